"""Execute pipelines against owned image buffers."""

from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

import numpy as np

from pipeline_workbench.core.errors import (
    BufferReleasedError,
    PipelineError,
    ResourceAcquisitionError,
)
from pipeline_workbench.core.provider import EncodedImage, ImageBuffer, ImageProvider

from . import catalog
from .pipeline import PipelineStep
from .registry import get_variant


LOGGER = logging.getLogger(__name__)


class ExecutionState(Enum):
    """States of a single pipeline run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StepFailure:
    """Report generated when a pipeline step fails during execution."""

    step_id: str
    step_name: str
    operation: str
    exception: Exception
    traceback: str


class StepExecutionError(PipelineError):
    """Error raised when a pipeline step cannot be executed successfully."""

    def __init__(self, failure: StepFailure) -> None:
        message = (
            f"Error in operation '{failure.step_name}' ({failure.operation}): {failure.exception}"
        )
        super().__init__(message)
        self.failure = failure


@dataclass(frozen=True)
class RunResult:
    """Outcome of a completed run."""

    image: EncodedImage
    passthrough: bool = False
    applied: Tuple[str, ...] = ()
    identity_passes: Tuple[str, ...] = ()
    duration: float = 0.0


class BufferSlot:
    """Holds the single live working buffer of a run.

    A replacement releases the previous occupant before it becomes current.
    Leaving the ``with`` block releases whatever buffer is still held, on
    success and on failure alike.
    """

    def __init__(self, buffer: ImageBuffer) -> None:
        self._current: Optional[ImageBuffer] = buffer

    @property
    def current(self) -> ImageBuffer:
        if self._current is None:
            raise BufferReleasedError("Buffer slot is empty")
        return self._current

    def replace(self, buffer: ImageBuffer) -> None:
        previous = self._current
        if buffer is previous:
            return
        try:
            if previous is not None:
                previous.release()
        finally:
            self._current = buffer

    def release(self) -> None:
        if self._current is None:
            return
        buffer, self._current = self._current, None
        buffer.release()

    def __enter__(self) -> "BufferSlot":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class PipelineExecutor:
    """Run ordered pipeline steps through the image-processing provider.

    Every run starts from a clone of the source buffer, so the source is
    never modified.  Unimplemented operations are applied as identity passes.
    A failing step aborts the run, releases all buffers the run owns and is
    reported through :class:`StepExecutionError`; no partial result is
    returned.
    """

    def __init__(
        self,
        provider: ImageProvider,
        *,
        readiness_timeout: float = 10.0,
        output_format: str = "PNG",
    ) -> None:
        self._provider = provider
        self._readiness_timeout = readiness_timeout
        self._output_format = output_format
        self._cv: Any = None
        self._state = ExecutionState.IDLE
        self._last_failure: Optional[StepFailure] = None

    @property
    def state(self) -> ExecutionState:
        return self._state

    def last_failure(self) -> Optional[StepFailure]:
        """Return the most recent step failure, if any."""

        return self._last_failure

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------
    def ensure_ready(self) -> Any:
        """Wait once for the provider and return its OpenCV module."""

        if self._cv is not None:
            return self._cv
        self._provider.initialize()
        self._cv = self._provider.readiness.wait(self._readiness_timeout)
        return self._cv

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def run(self, source: ImageBuffer, steps: Iterable[PipelineStep]) -> RunResult:
        """Execute ``steps`` against ``source`` and return the encoded result."""

        if self._state is ExecutionState.RUNNING:
            raise PipelineError("A pipeline run is already in progress")
        step_list = tuple(steps)
        self._state = ExecutionState.RUNNING
        self._last_failure = None
        started = time.perf_counter()
        try:
            cv = self.ensure_ready()
        except ResourceAcquisitionError:
            self._state = ExecutionState.FAILED
            LOGGER.warning("Pipeline run refused: provider not ready")
            raise
        if source.released:
            self._state = ExecutionState.FAILED
            raise BufferReleasedError("Source buffer has been released")

        try:
            if not step_list:
                result = RunResult(
                    image=self._provider.encode(source, self._output_format),
                    passthrough=True,
                )
            else:
                result = self._execute(cv, source, step_list)
        except Exception:
            self._state = ExecutionState.FAILED
            raise

        duration = time.perf_counter() - started
        self._state = ExecutionState.COMPLETED
        LOGGER.info(
            "Pipeline completed (%s steps, %s identity passes) in %.3fs",
            len(step_list),
            len(result.identity_passes),
            duration,
        )
        return RunResult(
            image=result.image,
            passthrough=result.passthrough,
            applied=result.applied,
            identity_passes=result.identity_passes,
            duration=duration,
        )

    def _execute(
        self, cv: Any, source: ImageBuffer, steps: Tuple[PipelineStep, ...]
    ) -> RunResult:
        applied: List[str] = []
        identity_passes: List[str] = []
        with BufferSlot(self._provider.clone(source, label="working")) as slot:
            for step in steps:
                if self._run_step(cv, slot, step):
                    applied.append(step.id)
                else:
                    identity_passes.append(step.id)
            encoded = self._provider.encode(slot.current, self._output_format)
        return RunResult(
            image=encoded,
            applied=tuple(applied),
            identity_passes=tuple(identity_passes),
        )

    def _run_step(self, cv: Any, slot: BufferSlot, step: PipelineStep) -> bool:
        """Apply ``step`` to the slot; return ``False`` for an identity pass."""

        try:
            variant = get_variant(step.operation)
            params = catalog.resolve_parameters(step.operation, step.params)
            if not variant.implemented:
                LOGGER.debug(
                    "Operation '%s' is not implemented; identity pass for step '%s'",
                    step.operation,
                    step.name,
                )
                return False
            current = slot.current
            LOGGER.debug("Applying step '%s' (%s) with params %s", step.name, step.operation, params)
            result = variant.transform(cv, current.data, params)
            if result is None or result is current.data:
                return True
            result = np.asarray(result)
            if (
                variant.inplace
                and result.shape == current.data.shape
                and result.dtype == current.data.dtype
            ):
                current.data[...] = result
                return True
            slot.replace(self._provider.adopt(result, label=step.id))
            return True
        except Exception as exc:
            failure = StepFailure(
                step_id=step.id,
                step_name=step.name,
                operation=step.operation,
                exception=exc,
                traceback=traceback.format_exc(),
            )
            self._last_failure = failure
            LOGGER.error(
                "Pipeline step failed",
                exc_info=exc,
                extra={"step": step.name, "operation": step.operation},
            )
            raise StepExecutionError(failure) from exc


__all__ = [
    "BufferSlot",
    "ExecutionState",
    "PipelineExecutor",
    "RunResult",
    "StepExecutionError",
    "StepFailure",
]
