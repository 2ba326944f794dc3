"""Core services: configuration, logging and the image-processing provider."""

from .errors import BufferReleasedError, PipelineError, ResourceAcquisitionError
from .logging_config import LoggingConfigurator, LoggingOptions
from .provider import EncodedImage, ImageBuffer, ImageProvider, ProviderState, ReadinessSignal
from .settings import WorkbenchConfiguration

__all__ = [
    "BufferReleasedError",
    "EncodedImage",
    "ImageBuffer",
    "ImageProvider",
    "LoggingConfigurator",
    "LoggingOptions",
    "PipelineError",
    "ProviderState",
    "ReadinessSignal",
    "ResourceAcquisitionError",
    "WorkbenchConfiguration",
]
