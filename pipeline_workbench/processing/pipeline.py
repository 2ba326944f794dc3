"""Ordered pipeline of parametrised operation steps."""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from . import catalog


LOGGER = logging.getLogger(__name__)


def _generate_id() -> str:
    return uuid.uuid4().hex[:9]


@dataclass
class PipelineStep:
    """A single step referencing a catalog operation.

    ``params`` only holds the values the user explicitly set; catalog defaults
    are applied when the step is executed or exported, never when it is
    authored.
    """

    operation: str
    params: Dict[str, Any] = field(default_factory=dict)
    name: str = ""
    id: str = field(default_factory=_generate_id)

    def __post_init__(self) -> None:
        descriptor = catalog.get_operation(self.operation)
        if not self.name:
            self.name = descriptor.label
        self.params = catalog.coerce_parameters(self.operation, self.params)

    @property
    def descriptor(self) -> catalog.OperationDescriptor:
        return catalog.get_operation(self.operation)

    def effective_params(self) -> Dict[str, Any]:
        """Return catalog defaults overridden by the recorded parameters."""

        return catalog.resolve_parameters(self.operation, self.params)

    def clone(self) -> "PipelineStep":
        """Return a copy with the same identity."""

        return PipelineStep(
            operation=self.operation,
            params=copy.deepcopy(self.params),
            name=self.name,
            id=self.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation,
            "name": self.name,
            "params": copy.deepcopy(self.params),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineStep":
        kwargs: Dict[str, Any] = {
            "operation": data["operation"],
            "params": dict(data.get("params", {})),
            "name": data.get("name", ""),
        }
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        return cls(**kwargs)


class Pipeline:
    """Ordered collection of :class:`PipelineStep` instances.

    Steps are referenced by identity rather than position so that edits stay
    stable while the order changes.
    """

    def __init__(self, steps: Optional[Iterable[PipelineStep]] = None) -> None:
        self._steps: List[PipelineStep] = []
        for step in steps or []:
            self._insert(step)

    def _insert(self, step: PipelineStep) -> None:
        if any(existing.id == step.id for existing in self._steps):
            raise ValueError(f"Duplicate step id '{step.id}'")
        self._steps.append(step)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def append(self, step: PipelineStep) -> PipelineStep:
        self._insert(step)
        LOGGER.debug("Appended step '%s' (%s)", step.name, step.operation)
        return step

    def add(
        self,
        operation: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        name: str = "",
    ) -> PipelineStep:
        """Create a step for ``operation`` and append it."""

        return self.append(PipelineStep(operation=operation, params=dict(params or {}), name=name))

    def remove(self, step_id: str) -> PipelineStep:
        index = self._index_of(step_id)
        step = self._steps.pop(index)
        LOGGER.debug("Removed step '%s' at index %s", step.name, index)
        return step

    def move(self, step_id: str, direction: str) -> bool:
        """Swap the step with its neighbour; ``direction`` is ``"up"`` or ``"down"``.

        Returns ``False`` when the step is already at that end of the list.
        """

        if direction not in ("up", "down"):
            raise ValueError(f"Unknown direction '{direction}'")
        index = self._index_of(step_id)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(self._steps):
            return False
        self._steps[index], self._steps[target] = self._steps[target], self._steps[index]
        LOGGER.info("Moved step '%s' from %s to %s", self._steps[target].name, index, target)
        return True

    def update_params(
        self,
        step_id: str,
        params: Mapping[str, Any],
        *,
        replace: bool = False,
    ) -> PipelineStep:
        step = self.get(step_id)
        coerced = catalog.coerce_parameters(step.operation, params)
        if replace:
            step.params = coerced
        else:
            step.params.update(coerced)
        return step

    def clear(self) -> None:
        self._steps.clear()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def _index_of(self, step_id: str) -> int:
        for index, step in enumerate(self._steps):
            if step.id == step_id:
                return index
        raise KeyError(f"No pipeline step with id '{step_id}'")

    def get(self, step_id: str) -> PipelineStep:
        return self._steps[self._index_of(step_id)]

    @property
    def steps(self) -> Tuple[PipelineStep, ...]:
        return tuple(self._steps)

    def get_order(self) -> List[str]:
        return [step.operation for step in self._steps]

    def snapshot(self) -> "Pipeline":
        """Return an independent copy preserving step identities."""

        return Pipeline(step.clone() for step in self._steps)

    def to_dict(self) -> Dict[str, Any]:
        return {"steps": [step.to_dict() for step in self._steps]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Pipeline":
        return cls(PipelineStep.from_dict(item) for item in data.get("steps", []))

    def __iter__(self) -> Iterator[PipelineStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)


__all__ = ["Pipeline", "PipelineStep"]
