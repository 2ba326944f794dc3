from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure the project root is on ``sys.path`` so tests can import
# ``pipeline_workbench`` without requiring the package to be installed.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-performance",
        action="store_true",
        default=False,
        help="run tests marked as performance",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--run-performance"):
        return
    skip_marker = pytest.mark.skip(reason="need --run-performance option to run")
    for item in items:
        if "performance" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def provider():
    """Provider with OpenCV loaded synchronously."""

    pytest.importorskip("cv2")
    from pipeline_workbench.core.provider import ImageProvider

    instance = ImageProvider()
    instance.initialize(background=False)
    return instance


@pytest.fixture
def quad_rgba():
    """2x2 RGBA image: red, green / blue, white."""

    np = pytest.importorskip("numpy")
    return np.array(
        [
            [[255, 0, 0, 255], [0, 255, 0, 255]],
            [[0, 0, 255, 255], [255, 255, 255, 255]],
        ],
        dtype=np.uint8,
    )


@pytest.fixture
def gradient_rgba():
    """Deterministic 24x32 RGBA image with no zero and no saturated gray values."""

    np = pytest.importorskip("numpy")
    rows = np.arange(24, dtype=np.uint16)[:, None]
    cols = np.arange(32, dtype=np.uint16)[None, :]
    red = (20 + rows * 5 + cols * 2) % 200 + 20
    green = (40 + rows * 3 + cols * 4) % 180 + 30
    blue = (60 + rows * 7 + cols) % 160 + 40
    alpha = np.full_like(red, 255)
    return np.stack([red, green, blue, alpha], axis=-1).astype(np.uint8)


@pytest.fixture
def restore_logging():
    """Restore root logger handlers and level changed by ``LoggingConfigurator``."""

    import logging

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
