from __future__ import annotations

import pytest

from pipeline_workbench.processing.catalog import UnknownOperationError
from pipeline_workbench.processing.pipeline import Pipeline, PipelineStep


def test_step_records_only_explicit_params() -> None:
    step = PipelineStep("gaussian_blur")

    assert step.params == {}
    assert step.name == "Gaussian Blur"
    assert step.effective_params() == {"blur": 5}
    assert len(step.id) == 9


def test_step_rejects_unknown_operation() -> None:
    with pytest.raises(UnknownOperationError):
        PipelineStep("sharpen")


def test_step_coerces_values() -> None:
    step = PipelineStep("resize", {"resize_width": "64"})

    assert step.params == {"resize_width": 64}


def test_add_remove_and_order() -> None:
    pipeline = Pipeline()
    first = pipeline.add("grayscale")
    second = pipeline.add("simple_thresh", {"threshold": 100})
    third = pipeline.add("erode", name="Thin")

    assert pipeline.get_order() == ["grayscale", "simple_thresh", "erode"]
    assert pipeline.get(third.id).name == "Thin"

    removed = pipeline.remove(second.id)
    assert removed is second
    assert [step.id for step in pipeline] == [first.id, third.id]
    assert len(pipeline) == 2

    with pytest.raises(KeyError):
        pipeline.remove(second.id)


def test_move_swaps_with_neighbour() -> None:
    pipeline = Pipeline()
    a = pipeline.add("grayscale")
    b = pipeline.add("flip")
    c = pipeline.add("rotate")

    assert pipeline.move(c.id, "up") is True
    assert [step.id for step in pipeline] == [a.id, c.id, b.id]
    assert pipeline.move(a.id, "up") is False
    assert pipeline.move(b.id, "down") is False
    with pytest.raises(ValueError):
        pipeline.move(a.id, "sideways")


def test_update_params_merges_or_replaces() -> None:
    pipeline = Pipeline()
    step = pipeline.add("crop", {"crop_x": 5})

    pipeline.update_params(step.id, {"crop_y": 7})
    assert step.params == {"crop_x": 5.0, "crop_y": 7.0}

    pipeline.update_params(step.id, {"crop_width": 50}, replace=True)
    assert step.params == {"crop_width": 50.0}


def test_duplicate_ids_are_rejected() -> None:
    step = PipelineStep("grayscale")
    pipeline = Pipeline([step])

    with pytest.raises(ValueError):
        pipeline.append(step.clone())


def test_snapshot_is_independent() -> None:
    pipeline = Pipeline()
    step = pipeline.add("gamma", {"gamma": 2.0})

    snapshot = pipeline.snapshot()
    pipeline.update_params(step.id, {"gamma": 0.5})

    assert snapshot.get(step.id).params == {"gamma": 2.0}


def test_dict_round_trip_preserves_identity() -> None:
    pipeline = Pipeline()
    pipeline.add("brightness", {"brightness": 130})
    pipeline.add("canny", name="Edges")

    restored = Pipeline.from_dict(pipeline.to_dict())

    assert [step.to_dict() for step in restored] == [step.to_dict() for step in pipeline]
