from __future__ import annotations

import ast

import pytest

from pipeline_workbench.processing import registry
from pipeline_workbench.processing.codegen import CodeSynthesizer, generate_script
from pipeline_workbench.processing.emitters import literal
from pipeline_workbench.processing.pipeline import Pipeline


def test_empty_pipeline_generates_nothing() -> None:
    assert generate_script(Pipeline().steps) == ""


def test_single_step_emits_one_block_with_resolved_literals() -> None:
    pipeline = Pipeline()
    pipeline.add("gaussian_blur", {"blur": 4})

    script = generate_script(pipeline.steps)

    assert script.count("# Step ") == 1
    assert "# Step 1: Gaussian Blur" in script
    assert "cv2.GaussianBlur(processed_image, (5, 5), 0)" in script
    assert script.startswith("import cv2\nimport numpy as np\n")
    assert "cv2.imread('input_image.jpg')" in script
    assert script.rstrip().endswith("cv2.imwrite('output_image.jpg', processed_image)")


def test_brightness_block_uses_coupled_coefficients() -> None:
    pipeline = Pipeline()
    pipeline.add("brightness", {"brightness": 130})

    script = generate_script(pipeline.steps)

    # contrast stays at its default of 120
    alpha, beta = 120.0 / 100, (130.0 - 100) * 2.55
    assert f"alpha, beta = {alpha!r}, {beta!r}" in script


def test_crop_block_uses_percentages() -> None:
    pipeline = Pipeline()
    pipeline.add("crop", {"crop_x": 25})

    script = generate_script(pipeline.steps)

    assert "np.floor(25.0 / 100 * width)" in script
    assert "np.floor(80.0 / 100 * height)" in script


def test_unimplemented_steps_are_omitted_but_keep_numbering() -> None:
    pipeline = Pipeline()
    pipeline.add("grayscale")
    pipeline.add("perspective")
    pipeline.add("otsu")

    script = generate_script(pipeline.steps)

    assert "# Step 1: Grayscale" in script
    assert "Perspective" not in script
    assert "# Step 3: Otsu Threshold" in script
    assert script.count("# Step ") == 2


def test_pipeline_of_only_omitted_steps_still_has_frame() -> None:
    pipeline = Pipeline()
    pipeline.add("find_contours")

    script = generate_script(pipeline.steps)

    assert "# Step" not in script
    assert "cv2.imwrite" in script


def test_custom_paths_are_quoted() -> None:
    pipeline = Pipeline()
    pipeline.add("flip", {"flip_direction": "horizontal"})

    script = CodeSynthesizer(input_path="in's.png", output_path="out.png").generate(pipeline.steps)

    assert "cv2.imread(\"in's.png\")" in script
    assert "cv2.flip(processed_image, 1)" in script


def test_draw_text_colour_is_bgr() -> None:
    pipeline = Pipeline()
    pipeline.add("draw_text", {"text": "hi", "text_color": "#102030", "text_font_size": 15})

    script = generate_script(pipeline.steps)

    assert "cv2.putText(processed_image, 'hi', (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.5, (48, 32, 16), 2)" in script


def test_every_exportable_operation_generates_valid_python() -> None:
    pipeline = Pipeline()
    for identifier, variant in registry.REGISTRY.items():
        if variant.exportable:
            pipeline.add(identifier)

    script = generate_script(pipeline.steps)

    ast.parse(script)
    assert script.count("# Step ") == len(pipeline)


def test_literal_rejects_unknown_types() -> None:
    assert literal((1, 2)) == "(1, 2)"
    assert literal((1,)) == "(1,)"
    with pytest.raises(TypeError):
        literal(object())


def test_step_names_cannot_break_out_of_comment() -> None:
    pipeline = Pipeline()
    pipeline.add("gaussian_blur", name="Blur\nimport os; os.system('echo hi')\r\n  x")

    script = generate_script(pipeline.steps)

    tree = ast.parse(script)
    assert not any(isinstance(node, ast.Import) and node.names[0].name == "os" for node in tree.body)
    assert "# Step 1: Blur import os; os.system('echo hi') x" in script


@pytest.mark.parametrize(
    "identifier",
    sorted(key for key, variant in registry.REGISTRY.items() if variant.exportable),
)
def test_exported_script_matches_executor(provider, gradient_rgba, tmp_path, identifier) -> None:
    np = pytest.importorskip("numpy")
    cv2 = pytest.importorskip("cv2")
    from pipeline_workbench.core.provider import ImageProvider
    from pipeline_workbench.processing.executor import PipelineExecutor

    pipeline = Pipeline()
    pipeline.add(identifier)
    input_path = tmp_path / "input.png"
    output_path = tmp_path / "output.png"
    assert cv2.imwrite(str(input_path), cv2.cvtColor(gradient_rgba, cv2.COLOR_RGBA2BGR))

    script = CodeSynthesizer(
        input_path=str(input_path), output_path=str(output_path)
    ).generate(pipeline.steps)
    exec(compile(script, "exported_pipeline.py", "exec"), {"__name__": "exported_pipeline"})
    exported = cv2.cvtColor(cv2.imread(str(output_path)), cv2.COLOR_BGR2RGB)

    source = provider.adopt(gradient_rgba.copy(), label="source")
    result = PipelineExecutor(provider).run(source, pipeline.steps)
    interactive = ImageProvider.decode_array(result.image)[:, :, :3]

    assert exported.shape == interactive.shape
    assert np.abs(exported.astype(int) - interactive.astype(int)).max() <= 1
