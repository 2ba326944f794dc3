"""Export pipelines as standalone OpenCV-Python scripts."""

from __future__ import annotations

import logging
from typing import Iterable, List

from . import catalog
from .emitters import literal
from .pipeline import PipelineStep
from .registry import get_variant


LOGGER = logging.getLogger(__name__)


_HEADER = """import cv2
import numpy as np

# Load image
image = cv2.imread({input_path})
processed_image = image.copy()

# Apply transform pipeline
"""

_FOOTER = """
# Save final processed image
cv2.imwrite({output_path}, processed_image)
"""


class CodeSynthesizer:
    """Translate pipeline steps into an equivalent script.

    The synthesizer does not touch image data.  Steps whose operation has no
    export mapping are left out of the script; their reasons are listed in
    :func:`pipeline_workbench.processing.registry.export_omissions`.
    """

    def __init__(
        self,
        *,
        input_path: str = "input_image.jpg",
        output_path: str = "output_image.jpg",
    ) -> None:
        self.input_path = input_path
        self.output_path = output_path

    def step_block(self, index: int, step: PipelineStep) -> str:
        """Return the annotated block for ``step`` or ``""`` when it is not exportable."""

        variant = get_variant(step.operation)
        if variant.emitter is None:
            LOGGER.debug(
                "Omitting step '%s' from export: %s", step.name, variant.export_omission
            )
            return ""
        params = catalog.resolve_parameters(step.operation, step.params)
        # Display names are free text; keep them on the comment line.
        title = " ".join(step.name.split())
        lines = [f"# Step {index}: {title}"]
        lines.extend(variant.emitter(params))
        return "\n".join(lines) + "\n"

    def blocks(self, steps: Iterable[PipelineStep]) -> List[str]:
        """Return the annotated blocks for the exportable steps, in order.

        Blocks are numbered by the step's position in the pipeline.
        """

        blocks: List[str] = []
        for index, step in enumerate(steps, start=1):
            block = self.step_block(index, step)
            if block:
                blocks.append(block)
        return blocks

    def generate(self, steps: Iterable[PipelineStep]) -> str:
        """Return the full script, or ``""`` for an empty pipeline."""

        step_list = list(steps)
        if not step_list:
            return ""
        parts = [_HEADER.format(input_path=literal(self.input_path))]
        for block in self.blocks(step_list):
            parts.append("\n" + block)
        parts.append(_FOOTER.format(output_path=literal(self.output_path)))
        return "".join(parts)


def generate_script(steps: Iterable[PipelineStep], **kwargs: str) -> str:
    return CodeSynthesizer(**kwargs).generate(steps)


__all__ = ["CodeSynthesizer", "generate_script"]
