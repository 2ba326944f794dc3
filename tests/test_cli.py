from __future__ import annotations

import json
from pathlib import Path

import pytest

from pipeline_workbench import cli


@pytest.fixture
def quiet_config(tmp_path: Path, restore_logging) -> str:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"enable_console_logging": False}), encoding="utf-8")
    return str(path)


def test_parse_step() -> None:
    assert cli.parse_step("grayscale") == ("grayscale", {})
    assert cli.parse_step("crop:crop_x=5, crop_width=50") == (
        "crop",
        {"crop_x": "5", "crop_width": "50"},
    )
    with pytest.raises(ValueError):
        cli.parse_step("crop:crop_x")
    with pytest.raises(ValueError):
        cli.parse_step(":crop_x=1")


def test_build_pipeline_validates_steps() -> None:
    pipeline = cli.build_pipeline(["gamma:gamma=0.5", "otsu"])

    assert pipeline.get_order() == ["gamma", "otsu"]
    assert pipeline.steps[0].params == {"gamma": 0.5}
    with pytest.raises(KeyError):
        cli.build_pipeline(["sharpen"])


def test_command_is_required() -> None:
    with pytest.raises(SystemExit):
        cli.build_argparser().parse_args([])


def test_list_prints_catalog(quiet_config: str, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--config", quiet_config, "list"]) == 0

    out = capsys.readouterr().out
    assert out.splitlines()[0] == "Basic Operations"
    assert "Thresholding" in out
    assert "perspective" in out and "(identity)" in out
    assert "threshold=128.0" in out


def test_export_prints_script(quiet_config: str, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(
        ["--config", quiet_config, "export", "-s", "gaussian_blur:blur=6", "-s", "perspective"]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "# Step 1: Gaussian Blur" in out
    assert "(7, 7)" in out
    assert "Perspective" not in out


def test_export_from_pipeline_file(quiet_config: str, tmp_path: Path) -> None:
    pipeline_file = tmp_path / "pipeline.json"
    pipeline_file.write_text(
        json.dumps({"steps": [{"operation": "flip", "params": {"flip_direction": "horizontal"}}]}),
        encoding="utf-8",
    )
    target = tmp_path / "script.py"

    code = cli.main(
        ["--config", quiet_config, "export", "--pipeline", str(pipeline_file), "-o", str(target)]
    )

    assert code == 0
    assert "cv2.flip(processed_image, 1)" in target.read_text(encoding="utf-8")


def test_invalid_step_exits_with_usage_error(
    quiet_config: str, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["--config", quiet_config, "export", "-s", "flip:flip_direction=up"]) == 2
    assert "flip_direction" in capsys.readouterr().err


def test_run_writes_result(quiet_config: str, tmp_path: Path, gradient_rgba) -> None:
    pytest.importorskip("cv2")
    from _image_helpers import encode_png
    from pipeline_workbench.core.provider import ImageProvider

    source = tmp_path / "in.png"
    source.write_bytes(encode_png(gradient_rgba))
    target = tmp_path / "out.png"

    code = cli.main(
        [
            "--config",
            quiet_config,
            "run",
            str(source),
            "-s",
            "grayscale",
            "-s",
            "simple_thresh:threshold=0",
            "-o",
            str(target),
        ]
    )

    assert code == 0
    output = ImageProvider.decode_array(target.read_bytes())
    assert output.shape == gradient_rgba.shape
    assert (output[:, :, :3] == 255).all()


def test_run_reports_failing_step(
    quiet_config: str, tmp_path: Path, gradient_rgba, capsys: pytest.CaptureFixture[str]
) -> None:
    pytest.importorskip("cv2")
    from _image_helpers import encode_png

    source = tmp_path / "in.png"
    source.write_bytes(encode_png(gradient_rgba))
    target = tmp_path / "out.png"

    code = cli.main(
        ["--config", quiet_config, "run", str(source), "-s", "crop:crop_x=90,crop_width=50", "-o", str(target)]
    )

    assert code == 1
    assert "Error in operation 'Crop' (crop)" in capsys.readouterr().err
    assert not target.exists()


def test_run_rejects_unreadable_image(
    quiet_config: str, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    pytest.importorskip("PIL.Image")
    source = tmp_path / "notes.txt"
    source.write_text("not an image", encoding="utf-8")

    code = cli.main(
        ["--config", quiet_config, "run", str(source), "-s", "grayscale", "-o", str(tmp_path / "out.png")]
    )

    assert code == 1
    assert "cannot read image" in capsys.readouterr().err


def test_missing_pipeline_file_is_a_usage_error(
    quiet_config: str, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    missing = tmp_path / "absent.json"

    code = cli.main(["--config", quiet_config, "export", "--pipeline", str(missing)])

    assert code == 2
    assert "absent.json" in capsys.readouterr().err


def test_missing_config_file_is_a_usage_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli.main(["--config", str(tmp_path / "nowhere.json"), "list"])

    assert code == 2
    assert "cannot load configuration" in capsys.readouterr().err
