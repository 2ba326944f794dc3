"""Image-processing capability provider.

The provider wraps OpenCV behind three concerns the executor relies on:

* a one-shot readiness signal.  :meth:`ImageProvider.initialize` loads the
  OpenCV bindings on a background thread and resolves a
  :class:`ReadinessSignal` to ``READY`` or ``ERROR``.  Consumers block on
  :meth:`ReadinessSignal.wait` with an explicit timeout instead of polling.
* owned raster buffers.  Every :class:`ImageBuffer` is allocated through the
  provider (``decode``, ``adopt`` or ``clone``) and must be released exactly
  once.  The provider keeps a ledger of live and peak allocations so callers
  can verify ownership discipline.
* decode/encode between portable image bytes and 8-bit RGBA buffers, handled
  through :mod:`Pillow` like the rest of the data layer.
"""

from __future__ import annotations

import base64
import concurrent.futures
import importlib
import io
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import ModuleType
from typing import Any, Callable, Optional

import numpy as np
from PIL import Image

from .errors import BufferReleasedError, ResourceAcquisitionError


LOGGER = logging.getLogger(__name__)


class ProviderState(Enum):
    """Lifecycle states of the capability provider."""

    NOT_READY = "not-ready"
    READY = "ready"
    ERROR = "error"


class ReadinessSignal:
    """One-shot signal resolved once the provider finished initialising."""

    def __init__(self) -> None:
        self._future: concurrent.futures.Future = concurrent.futures.Future()

    @property
    def state(self) -> ProviderState:
        if not self._future.done():
            return ProviderState.NOT_READY
        if self._future.exception() is not None:
            return ProviderState.ERROR
        return ProviderState.READY

    def set_ready(self, module: Any) -> None:
        if self._future.done():
            raise RuntimeError("Readiness signal already resolved")
        self._future.set_result(module)

    def set_error(self, exc: BaseException) -> None:
        if self._future.done():
            raise RuntimeError("Readiness signal already resolved")
        self._future.set_exception(exc)

    def add_done_callback(self, callback: Callable[["ReadinessSignal"], None]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))

    def wait(self, timeout: Optional[float] = None) -> Any:
        """Block until resolved and return the loaded module.

        Raises :class:`ResourceAcquisitionError` when initialisation failed or
        did not finish within ``timeout`` seconds.
        """

        try:
            return self._future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as exc:
            raise ResourceAcquisitionError(
                f"Image-processing provider not ready after {timeout} seconds"
            ) from exc
        except Exception as exc:
            raise ResourceAcquisitionError(
                f"Image-processing provider failed to initialise: {exc}"
            ) from exc


class ImageBuffer:
    """Owned raster handle allocated by an :class:`ImageProvider`."""

    __slots__ = ("_data", "_owner", "_released", "label")

    def __init__(self, data: np.ndarray, owner: "ImageProvider", label: str = "") -> None:
        self._data: Optional[np.ndarray] = data
        self._owner = owner
        self._released = False
        self.label = label

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise BufferReleasedError(f"Buffer '{self.label}' has been released")
        return self._data

    @property
    def released(self) -> bool:
        return self._released

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        data = self.data
        return 1 if data.ndim == 2 else int(data.shape[2])

    def release(self) -> None:
        self._owner.release(self)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        if self._released:
            return f"ImageBuffer({self.label!r}, released)"
        return f"ImageBuffer({self.label!r}, {self.width}x{self.height}x{self.channels})"


@dataclass(frozen=True)
class EncodedImage:
    """Portable encoded representation of a processed buffer."""

    data: bytes
    width: int
    height: int
    format: str = "PNG"

    @property
    def mime_type(self) -> str:
        return f"image/{self.format.lower()}"

    def to_data_url(self) -> str:
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{payload}"


def _import_opencv() -> ModuleType:
    return importlib.import_module("cv2")


class ImageProvider:
    """Capability provider backed by OpenCV and Pillow."""

    def __init__(self, loader: Optional[Callable[[], Any]] = None) -> None:
        self._loader = loader or _import_opencv
        self._signal = ReadinessSignal()
        self._started = False
        self._start_lock = threading.Lock()
        self._ledger_lock = threading.Lock()
        self._cv: Any = None
        self._live = 0
        self._peak = 0
        self._allocated = 0

    # ------------------------------------------------------------------
    # Readiness lifecycle
    # ------------------------------------------------------------------
    @property
    def readiness(self) -> ReadinessSignal:
        return self._signal

    @property
    def state(self) -> ProviderState:
        return self._signal.state

    def initialize(self, *, background: bool = True) -> ReadinessSignal:
        """Start loading the OpenCV bindings; subsequent calls are no-ops."""

        with self._start_lock:
            if self._started:
                return self._signal
            self._started = True
        if background:
            thread = threading.Thread(
                target=self._load, name="image-provider-init", daemon=True
            )
            thread.start()
        else:
            self._load()
        return self._signal

    def _load(self) -> None:
        try:
            module = self._loader()
        except Exception as exc:
            LOGGER.error("Image-processing provider failed to load", exc_info=exc)
            self._signal.set_error(exc)
            return
        self._cv = module
        LOGGER.info("Image-processing provider ready")
        self._signal.set_ready(module)

    @property
    def cv(self) -> Any:
        """Return the loaded OpenCV module; requires ``READY`` state."""

        if self.state is not ProviderState.READY:
            raise ResourceAcquisitionError(
                f"Image-processing provider is {self.state.value}"
            )
        return self._cv

    # ------------------------------------------------------------------
    # Buffer ownership
    # ------------------------------------------------------------------
    def adopt(self, array: np.ndarray, label: str = "") -> ImageBuffer:
        """Take ownership of ``array`` as a new buffer."""

        buffer = ImageBuffer(np.ascontiguousarray(array), self, label)
        with self._ledger_lock:
            self._live += 1
            self._allocated += 1
            self._peak = max(self._peak, self._live)
        return buffer

    def clone(self, buffer: ImageBuffer, label: str = "") -> ImageBuffer:
        return self.adopt(buffer.data.copy(), label or f"{buffer.label}-clone")

    def release(self, buffer: ImageBuffer) -> None:
        if buffer._owner is not self:
            raise ValueError("Buffer was allocated by a different provider")
        if buffer._released:
            raise BufferReleasedError(f"Buffer '{buffer.label}' released twice")
        buffer._released = True
        buffer._data = None
        with self._ledger_lock:
            self._live -= 1

    @property
    def live_buffers(self) -> int:
        return self._live

    @property
    def peak_buffers(self) -> int:
        return self._peak

    @property
    def total_allocations(self) -> int:
        return self._allocated

    def reset_peak(self) -> None:
        with self._ledger_lock:
            self._peak = self._live

    # ------------------------------------------------------------------
    # Decode / encode
    # ------------------------------------------------------------------
    def decode(self, payload: bytes, label: str = "source") -> ImageBuffer:
        """Decode encoded image bytes into an 8-bit RGBA buffer."""

        with Image.open(io.BytesIO(payload)) as img:
            rgba = img.convert("RGBA")
            array = np.array(rgba, dtype=np.uint8)
        LOGGER.debug("Decoded %sx%s image", array.shape[1], array.shape[0])
        return self.adopt(array, label)

    def encode(self, buffer: ImageBuffer, format: str = "PNG") -> EncodedImage:
        """Encode ``buffer`` without consuming it."""

        array = buffer.data
        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)
        if array.ndim == 3 and array.shape[2] == 1:
            array = array[:, :, 0]
        stream = io.BytesIO()
        Image.fromarray(array).save(stream, format=format)
        return EncodedImage(
            data=stream.getvalue(),
            width=int(array.shape[1]),
            height=int(array.shape[0]),
            format=format.upper(),
        )

    @staticmethod
    def decode_array(encoded: EncodedImage | bytes) -> np.ndarray:
        """Return the pixels of an encoded image without allocating a buffer."""

        payload = encoded.data if isinstance(encoded, EncodedImage) else encoded
        with Image.open(io.BytesIO(payload)) as img:
            return np.array(img)


__all__ = [
    "BufferReleasedError",
    "EncodedImage",
    "ImageBuffer",
    "ImageProvider",
    "ProviderState",
    "ReadinessSignal",
    "ResourceAcquisitionError",
]
