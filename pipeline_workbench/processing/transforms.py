"""Executor transforms for catalog operations.

Every transform has the signature ``transform(cv, image, params)`` where
``cv`` is the OpenCV module handed out by the capability provider, ``image``
is the current working array (RGB channel order, one, three or four
channels) and ``params`` is the resolved parameter set.  A transform either
returns a new array or ``None`` after modifying ``image`` in place.

The numeric derivations (kernel sizes, linear coefficients, crop rectangles,
lookup tables) live in small helpers shared with the script emitters so the
interactive result and the exported script agree.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np


Params = Mapping[str, Any]


# ----------------------------------------------------------------------
# Shared numeric derivations
# ----------------------------------------------------------------------
def odd_kernel_size(value: Any) -> int:
    """Round even kernel sizes up to the next odd value."""

    size = int(value)
    if size % 2 == 0:
        size += 1
    return size


def linear_coefficients(params: Params) -> Tuple[float, float]:
    """Return ``(alpha, beta)`` for the combined brightness/contrast transform."""

    alpha = params["contrast"] / 100
    beta = (params["brightness"] - 100) * 2.55
    return alpha, beta


def gamma_table(gamma: float) -> np.ndarray:
    """Return the 256 entry lookup table ``floor((i/255)^gamma * 255)``."""

    if gamma <= 0:
        raise ValueError("Gamma must be > 0")
    levels = np.power(np.arange(256) / 255.0, gamma) * 255.0
    # Rounding to six decimals absorbs float error at exact integers.
    return np.floor(np.round(levels, 6)).astype(np.uint8)


def crop_rectangle(params: Params, width: int, height: int) -> Tuple[int, int, int, int]:
    """Convert percentage crop parameters into an ``(x, y, w, h)`` pixel rectangle."""

    x = max(0, math.floor(params["crop_x"] / 100 * width))
    y = max(0, math.floor(params["crop_y"] / 100 * height))
    w = max(1, math.floor(params["crop_width"] / 100 * width))
    h = max(1, math.floor(params["crop_height"] / 100 * height))
    return x, y, w, h


def flip_code(params: Params) -> int:
    return 1 if params["flip_direction"] == "horizontal" else 0


def bilateral_settings(params: Params) -> Tuple[int, float, float]:
    diameter = max(1, int(round(float(params["bilateral_diameter"]))))
    sigma_color = max(1.0, float(params["bilateral_sigma_color"]))
    sigma_space = max(1.0, float(params["bilateral_sigma_space"]))
    return diameter, sigma_color, sigma_space


def text_scale(params: Params) -> float:
    return params["text_font_size"] / 10


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """Parse ``#rrggbb`` (or ``#rgb``) into an ``(r, g, b)`` tuple."""

    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid colour '{value}'")
    return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)


# ----------------------------------------------------------------------
# Channel helpers
# ----------------------------------------------------------------------
def _channels(image: np.ndarray) -> int:
    return 1 if image.ndim == 2 else int(image.shape[2])


def _to_gray(cv: Any, image: np.ndarray) -> np.ndarray:
    channels = _channels(image)
    if image.ndim == 2:
        return image
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv.cvtColor(image, cv.COLOR_RGBA2GRAY)
    return cv.cvtColor(image, cv.COLOR_RGB2GRAY)


def _expand_gray(cv: Any, gray: np.ndarray, like: np.ndarray) -> np.ndarray:
    """Re-expand a single channel result to the channel layout of ``like``."""

    if like.ndim == 2:
        return gray
    channels = like.shape[2]
    if channels == 1:
        return gray[:, :, np.newaxis]
    if channels == 4:
        return cv.cvtColor(gray, cv.COLOR_GRAY2RGBA)
    return cv.cvtColor(gray, cv.COLOR_GRAY2RGB)


def _to_rgb(cv: Any, image: np.ndarray) -> np.ndarray:
    channels = _channels(image)
    if channels == 4:
        return cv.cvtColor(image, cv.COLOR_RGBA2RGB)
    if channels == 1:
        return cv.cvtColor(_to_gray(cv, image), cv.COLOR_GRAY2RGB)
    return image


def _restore_rgb(cv: Any, rgb: np.ndarray, like: np.ndarray) -> np.ndarray:
    channels = _channels(like)
    if channels == 4:
        return cv.cvtColor(rgb, cv.COLOR_RGB2RGBA)
    if channels == 1:
        return _expand_gray(cv, cv.cvtColor(rgb, cv.COLOR_RGB2GRAY), like)
    return rgb


# ----------------------------------------------------------------------
# Basic operations
# ----------------------------------------------------------------------
def grayscale(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    return _expand_gray(cv, _to_gray(cv, image), image)


def resize(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    height, width = image.shape[:2]
    target_width = int(params["resize_width"]) or width
    target_height = int(params["resize_height"]) or height
    resized = cv.resize(image, (target_width, target_height), interpolation=cv.INTER_LINEAR)
    if image.ndim == 3 and resized.ndim == 2:
        resized = resized[:, :, np.newaxis]
    return resized


def crop(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    height, width = image.shape[:2]
    x, y, w, h = crop_rectangle(params, width, height)
    if x + w > width or y + h > height:
        raise ValueError(
            f"Crop rectangle ({x}, {y}, {w}, {h}) exceeds image bounds {width}x{height}"
        )
    return image[y : y + h, x : x + w].copy()


def flip(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    flipped = cv.flip(image, flip_code(params))
    if image.ndim == 3 and flipped.ndim == 2:
        flipped = flipped[:, :, np.newaxis]
    return flipped


_QUARTER_TURNS = {90: "ROTATE_90_CLOCKWISE", 180: "ROTATE_180", 270: "ROTATE_90_COUNTERCLOCKWISE"}


def rotation_flag(angle: float) -> Optional[str]:
    """Return the lossless rotation flag name for ``angle`` or ``None``."""

    if float(angle).is_integer():
        return _QUARTER_TURNS.get(int(angle))
    return None


def rotate(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    angle = params["rotate_angle"]
    flag = rotation_flag(angle)
    if flag is not None:
        rotated = cv.rotate(image, getattr(cv, flag))
    else:
        height, width = image.shape[:2]
        matrix = cv.getRotationMatrix2D((width / 2, height / 2), angle, 1)
        rotated = cv.warpAffine(image, matrix, (width, height))
    if image.ndim == 3 and rotated.ndim == 2:
        rotated = rotated[:, :, np.newaxis]
    return rotated


# ----------------------------------------------------------------------
# Colour spaces
# ----------------------------------------------------------------------
def _round_trip(forward: str, backward: str):
    def transform(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
        rgb = _to_rgb(cv, image)
        converted = cv.cvtColor(rgb, getattr(cv, forward))
        return _restore_rgb(cv, cv.cvtColor(converted, getattr(cv, backward)), image)

    transform.__name__ = f"round_trip_{forward.lower()}"
    return transform


hsv = _round_trip("COLOR_RGB2HSV", "COLOR_HSV2RGB")
lab = _round_trip("COLOR_RGB2Lab", "COLOR_Lab2RGB")
ycrcb = _round_trip("COLOR_RGB2YCrCb", "COLOR_YCrCb2RGB")


# ----------------------------------------------------------------------
# Point operations
# ----------------------------------------------------------------------
def brightness_contrast(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    alpha, beta = linear_coefficients(params)
    adjusted = cv.addWeighted(image, alpha, image, 0, beta)
    if adjusted.ndim == 2 and image.ndim == 3:
        adjusted = adjusted[:, :, np.newaxis]
    if _channels(image) == 4:
        adjusted[:, :, 3] = image[:, :, 3]
    return adjusted


def gamma(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    table = gamma_table(float(params["gamma"]))
    return cv.LUT(image, table).reshape(image.shape)


def hist_eq(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    if _channels(image) == 1:
        return _expand_gray(cv, cv.equalizeHist(_to_gray(cv, image)), image)
    ycrcb_image = cv.cvtColor(_to_rgb(cv, image), cv.COLOR_RGB2YCrCb)
    ycrcb_image[:, :, 0] = cv.equalizeHist(np.ascontiguousarray(ycrcb_image[:, :, 0]))
    return _restore_rgb(cv, cv.cvtColor(ycrcb_image, cv.COLOR_YCrCb2RGB), image)


# ----------------------------------------------------------------------
# Blurring
# ----------------------------------------------------------------------
def gaussian_blur(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    size = odd_kernel_size(params["blur"])
    return cv.GaussianBlur(image, (size, size), 0).reshape(image.shape)


def median_blur(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    size = odd_kernel_size(params["blur"])
    return cv.medianBlur(image, size).reshape(image.shape)


def bilateral(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    diameter, sigma_color, sigma_space = bilateral_settings(params)
    filtered = cv.bilateralFilter(_to_rgb(cv, image), diameter, sigma_color, sigma_space)
    return _restore_rgb(cv, filtered, image)


def nl_means(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    strength = float(params["nl_strength"])
    if _channels(image) == 1:
        denoised = cv.fastNlMeansDenoising(_to_gray(cv, image), None, strength, 7, 21)
        return _expand_gray(cv, denoised, image)
    # The coloured variant works in CIELAB converted from BGR.
    bgr = cv.cvtColor(_to_rgb(cv, image), cv.COLOR_RGB2BGR)
    denoised = cv.fastNlMeansDenoisingColored(bgr, None, strength, strength, 7, 21)
    return _restore_rgb(cv, cv.cvtColor(denoised, cv.COLOR_BGR2RGB), image)


# ----------------------------------------------------------------------
# Edge detection
# ----------------------------------------------------------------------
def canny(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    edges = cv.Canny(
        _to_gray(cv, image), params["canny_threshold1"], params["canny_threshold2"]
    )
    return _expand_gray(cv, edges, image)


def sobel(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    gradient = cv.Sobel(
        _to_gray(cv, image), cv.CV_16S, int(params["sobel_dx"]), int(params["sobel_dy"])
    )
    return _expand_gray(cv, cv.convertScaleAbs(gradient), image)


def laplacian(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    response = cv.Laplacian(_to_gray(cv, image), cv.CV_16S)
    return _expand_gray(cv, cv.convertScaleAbs(response), image)


# ----------------------------------------------------------------------
# Thresholding
# ----------------------------------------------------------------------
def simple_thresh(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    _, binary = cv.threshold(_to_gray(cv, image), params["threshold"], 255, cv.THRESH_BINARY)
    return _expand_gray(cv, binary, image)


def adaptive_thresh(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    binary = cv.adaptiveThreshold(
        _to_gray(cv, image),
        255,
        cv.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv.THRESH_BINARY,
        int(params["adaptive_block_size"]),
        params["adaptive_c"],
    )
    return _expand_gray(cv, binary, image)


def otsu(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    _, binary = cv.threshold(_to_gray(cv, image), 0, 255, cv.THRESH_BINARY + cv.THRESH_OTSU)
    return _expand_gray(cv, binary, image)


# ----------------------------------------------------------------------
# Morphology
# ----------------------------------------------------------------------
def _structuring_element(cv: Any, params: Params) -> np.ndarray:
    size = int(params["morph_kernel_size"])
    return cv.getStructuringElement(cv.MORPH_RECT, (size, size))


def erode(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    return cv.erode(image, _structuring_element(cv, params)).reshape(image.shape)


def dilate(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    return cv.dilate(image, _structuring_element(cv, params)).reshape(image.shape)


def morph_open(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    kernel = _structuring_element(cv, params)
    return cv.morphologyEx(image, cv.MORPH_OPEN, kernel).reshape(image.shape)


def morph_close(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    kernel = _structuring_element(cv, params)
    return cv.morphologyEx(image, cv.MORPH_CLOSE, kernel).reshape(image.shape)


# ----------------------------------------------------------------------
# Geometry and annotation
# ----------------------------------------------------------------------
def translate(cv: Any, image: np.ndarray, params: Params) -> np.ndarray:
    height, width = image.shape[:2]
    matrix = np.float32([[1, 0, params["translate_x"]], [0, 1, params["translate_y"]]])
    return cv.warpAffine(image, matrix, (width, height)).reshape(image.shape)


def draw_text(cv: Any, image: np.ndarray, params: Params) -> None:
    red, green, blue = parse_hex_color(params["text_color"])
    channels = _channels(image)
    if channels == 4:
        color: Tuple[int, ...] = (red, green, blue, 255)
    elif channels == 3:
        color = (red, green, blue)
    else:
        color = (red,)
    cv.putText(
        image,
        params["text"],
        (int(params["text_x"]), int(params["text_y"])),
        cv.FONT_HERSHEY_SIMPLEX,
        text_scale(params),
        color,
        2,
    )
    return None


def identity_pass(cv: Any, image: np.ndarray, params: Params) -> None:
    """Leave the buffer untouched for recognised but unimplemented operations."""

    return None


__all__ = [
    "bilateral_settings",
    "crop_rectangle",
    "flip_code",
    "gamma_table",
    "identity_pass",
    "linear_coefficients",
    "odd_kernel_size",
    "parse_hex_color",
    "rotation_flag",
    "text_scale",
]
