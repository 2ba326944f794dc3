"""Exception hierarchy shared by the provider and the pipeline executor."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for failures surfaced to callers of a pipeline run."""


class ResourceAcquisitionError(PipelineError):
    """Raised when the image-processing provider cannot be used for a run."""


class BufferReleasedError(PipelineError):
    """Raised when a released buffer is accessed or released a second time."""


__all__ = ["BufferReleasedError", "PipelineError", "ResourceAcquisitionError"]
