"""Top level package for the image pipeline workbench."""

from __future__ import annotations

from importlib import metadata as _importlib_metadata


def _resolve_distribution_version() -> str:
    """Best-effort retrieval of the installed package version."""

    candidates = ("pipeline-workbench", "pipeline_workbench")
    for name in candidates:
        try:
            return _importlib_metadata.version(name)
        except _importlib_metadata.PackageNotFoundError:  # pragma: no cover - metadata lookup
            continue
    return "0.0.0"


__version__ = _resolve_distribution_version()


def get_version() -> str:
    """Return the discovered package version."""

    return __version__


from .core import ImageProvider, WorkbenchConfiguration  # noqa: E402
from .processing import CodeSynthesizer, Pipeline, PipelineExecutor, PipelineStep  # noqa: E402
from .session import WorkbenchSession  # noqa: E402

__all__ = [
    "CodeSynthesizer",
    "ImageProvider",
    "Pipeline",
    "PipelineExecutor",
    "PipelineStep",
    "WorkbenchConfiguration",
    "WorkbenchSession",
    "__version__",
    "get_version",
]
