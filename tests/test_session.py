from __future__ import annotations

import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("PIL.Image", reason="Pillow is required for session tests")

from _image_helpers import encode_png
from pipeline_workbench.core.errors import PipelineError
from pipeline_workbench.core.provider import ImageProvider
from pipeline_workbench.core.settings import WorkbenchConfiguration
from pipeline_workbench.processing.executor import StepExecutionError
from pipeline_workbench.session import WorkbenchSession


@pytest.fixture
def session(provider):
    with WorkbenchSession(provider) as instance:
        yield instance


def test_run_without_image_is_refused(session) -> None:
    with pytest.raises(PipelineError, match="No image loaded"):
        session.run()


def test_load_image_shows_original_and_clears_pipeline(session, gradient_rgba) -> None:
    session.add_step("grayscale")

    session.load_image(encode_png(gradient_rgba))

    assert len(session.pipeline) == 0
    assert session.processed is session.original
    assert np.array_equal(ImageProvider.decode_array(session.original), gradient_rgba)


def test_loading_again_releases_previous_source(session, provider, gradient_rgba) -> None:
    first = session.load_image(encode_png(gradient_rgba))
    second = session.load_image(encode_png(gradient_rgba[:8, :8]))

    assert first.released
    assert session.source is second
    assert provider.live_buffers == 1


def test_successful_run_publishes_result(session, quad_rgba) -> None:
    session.load_image(encode_png(quad_rgba))
    session.add_step("grayscale")
    step = session.add_step("simple_thresh", {"threshold": 100})
    session.update_step(step.id, {"threshold": 200})

    result = session.run()

    assert session.processed is result.image
    output = ImageProvider.decode_array(result.image)
    # Only the white pixel (gray 255) exceeds 200.
    assert output[:, :, 0].tolist() == [[0, 0], [0, 255]]


def test_failed_run_clears_displayed_result(session, gradient_rgba) -> None:
    session.load_image(encode_png(gradient_rgba))
    session.add_step("grayscale")
    session.run()
    assert session.processed is not None

    session.add_step("crop", {"crop_x": 95, "crop_width": 50}, name="Too wide")
    with pytest.raises(StepExecutionError):
        session.run()

    assert session.processed is None
    assert "Too wide" in session.last_error


def test_editing_steps_through_session(session) -> None:
    a = session.add_step("grayscale")
    b = session.add_step("flip")

    assert session.move_step(b.id, "up") is True
    assert session.pipeline.get_order() == ["flip", "grayscale"]
    session.remove_step(a.id)
    assert session.pipeline.get_order() == ["flip"]


def test_reset_restores_original(session, gradient_rgba) -> None:
    session.load_image(encode_png(gradient_rgba))
    session.add_step("otsu")
    session.run()

    session.reset()

    assert len(session.pipeline) == 0
    assert session.processed is session.original


def test_export_uses_configured_paths(provider) -> None:
    config = WorkbenchConfiguration(script_input_path="in.png", script_output_path="out.png")
    session = WorkbenchSession(provider, configuration=config)
    session.add_step("median_blur")

    script = session.export_script()

    assert "cv2.imread('in.png')" in script
    assert "cv2.imwrite('out.png', processed_image)" in script
    assert "cv2.medianBlur(processed_image, 5)" in script


def test_close_releases_source(provider, gradient_rgba) -> None:
    session = WorkbenchSession(provider)
    session.load_image(encode_png(gradient_rgba))

    session.close()

    assert session.source is None
    assert session.processed is None
    assert provider.live_buffers == 0
