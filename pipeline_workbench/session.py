"""Session glue between an editor, the executor and the code synthesizer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from .core.errors import PipelineError
from .core.provider import EncodedImage, ImageBuffer, ImageProvider
from .core.settings import WorkbenchConfiguration
from .processing.codegen import CodeSynthesizer
from .processing.executor import PipelineExecutor, RunResult
from .processing.pipeline import Pipeline, PipelineStep


LOGGER = logging.getLogger(__name__)


class WorkbenchSession:
    """Holds the loaded source image, the pipeline and the displayed result.

    The displayed result is cleared when a run starts and only replaced when
    the run completes, so a failed run never leaves a stale or partial image
    behind.
    """

    def __init__(
        self,
        provider: Optional[ImageProvider] = None,
        *,
        configuration: Optional[WorkbenchConfiguration] = None,
    ) -> None:
        self.configuration = configuration or WorkbenchConfiguration()
        self.provider = provider or ImageProvider()
        self.executor = PipelineExecutor(
            self.provider,
            readiness_timeout=self.configuration.readiness_timeout_seconds,
            output_format=self.configuration.output_format,
        )
        self.synthesizer = CodeSynthesizer(
            input_path=self.configuration.script_input_path,
            output_path=self.configuration.script_output_path,
        )
        self.pipeline = Pipeline()
        self._source: Optional[ImageBuffer] = None
        self._original: Optional[EncodedImage] = None
        self._processed: Optional[EncodedImage] = None
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Image loading
    # ------------------------------------------------------------------
    @property
    def source(self) -> Optional[ImageBuffer]:
        return self._source

    @property
    def original(self) -> Optional[EncodedImage]:
        return self._original

    @property
    def processed(self) -> Optional[EncodedImage]:
        return self._processed

    def load_image(self, payload: bytes) -> ImageBuffer:
        """Decode ``payload`` as the new source image and clear the pipeline."""

        source = self.provider.decode(payload, label="source")
        self._release_source()
        self._source = source
        self._original = self.provider.encode(source, self.configuration.output_format)
        self._processed = self._original
        self.pipeline.clear()
        self.last_error = None
        LOGGER.info("Loaded %sx%s source image", source.width, source.height)
        return source

    def load_path(self, path: Path | str) -> ImageBuffer:
        return self.load_image(Path(path).read_bytes())

    def _release_source(self) -> None:
        if self._source is not None and not self._source.released:
            self._source.release()
        self._source = None

    # ------------------------------------------------------------------
    # Pipeline editing
    # ------------------------------------------------------------------
    def add_step(
        self, operation: str, params: Optional[Mapping[str, Any]] = None, *, name: str = ""
    ) -> PipelineStep:
        return self.pipeline.add(operation, params, name=name)

    def remove_step(self, step_id: str) -> PipelineStep:
        return self.pipeline.remove(step_id)

    def move_step(self, step_id: str, direction: str) -> bool:
        return self.pipeline.move(step_id, direction)

    def update_step(self, step_id: str, params: Mapping[str, Any]) -> PipelineStep:
        return self.pipeline.update_params(step_id, params)

    # ------------------------------------------------------------------
    # Execution and export
    # ------------------------------------------------------------------
    def run(self) -> RunResult:
        """Execute the pipeline against the original source image."""

        if self._source is None:
            raise PipelineError("No image loaded")
        self._processed = None
        self.last_error = None
        try:
            result = self.executor.run(self._source, self.pipeline.steps)
        except PipelineError as exc:
            self.last_error = str(exc)
            raise
        self._processed = result.image
        return result

    def export_script(self) -> str:
        return self.synthesizer.generate(self.pipeline.steps)

    def reset(self) -> None:
        """Drop the pipeline and show the original image again."""

        self.pipeline.clear()
        self._processed = self._original
        self.last_error = None

    def close(self) -> None:
        self._release_source()
        self._original = None
        self._processed = None

    def __enter__(self) -> "WorkbenchSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["WorkbenchSession"]
