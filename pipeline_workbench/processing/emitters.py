"""Script emitters used by the code synthesizer.

Each emitter maps resolved step parameters to the lines of a standalone
OpenCV-Python script operating on a BGR ``processed_image`` array.  Numeric
literals come from the same helpers the executor uses.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from . import transforms


Params = Mapping[str, Any]


def literal(value: Any) -> str:
    """Render ``value`` as a Python literal."""

    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (int, float, str)):
        return repr(value)
    if isinstance(value, (tuple, list)):
        return "(" + ", ".join(literal(item) for item in value) + ("," if len(value) == 1 else "") + ")"
    raise TypeError(f"Cannot render {type(value).__name__} as a literal")


def _gray_round_trip(*lines: str) -> List[str]:
    return [
        "gray = cv2.cvtColor(processed_image, cv2.COLOR_BGR2GRAY)",
        *lines,
        "processed_image = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)",
    ]


def grayscale(params: Params) -> List[str]:
    return _gray_round_trip()


def resize(params: Params) -> List[str]:
    width = int(params["resize_width"]) or "width"
    height = int(params["resize_height"]) or "height"
    return [
        "height, width = processed_image.shape[:2]",
        f"processed_image = cv2.resize(processed_image, ({width}, {height}), interpolation=cv2.INTER_LINEAR)",
    ]


def crop(params: Params) -> List[str]:
    return [
        "height, width = processed_image.shape[:2]",
        f"x = max(0, int(np.floor({literal(params['crop_x'])} / 100 * width)))",
        f"y = max(0, int(np.floor({literal(params['crop_y'])} / 100 * height)))",
        f"w = max(1, int(np.floor({literal(params['crop_width'])} / 100 * width)))",
        f"h = max(1, int(np.floor({literal(params['crop_height'])} / 100 * height)))",
        "processed_image = processed_image[y:y + h, x:x + w].copy()",
    ]


def flip(params: Params) -> List[str]:
    return [f"processed_image = cv2.flip(processed_image, {transforms.flip_code(params)})"]


def rotate(params: Params) -> List[str]:
    angle = params["rotate_angle"]
    flag = transforms.rotation_flag(angle)
    if flag is not None:
        return [f"processed_image = cv2.rotate(processed_image, cv2.{flag})"]
    return [
        "height, width = processed_image.shape[:2]",
        f"matrix = cv2.getRotationMatrix2D((width / 2, height / 2), {literal(angle)}, 1)",
        "processed_image = cv2.warpAffine(processed_image, matrix, (width, height))",
    ]


def _color_round_trip(space: str) -> Any:
    def emit(params: Params) -> List[str]:
        return [
            f"converted = cv2.cvtColor(processed_image, cv2.COLOR_BGR2{space})",
            f"processed_image = cv2.cvtColor(converted, cv2.COLOR_{space}2BGR)",
        ]

    emit.__name__ = f"emit_{space.lower()}"
    return emit


hsv = _color_round_trip("HSV")
lab = _color_round_trip("Lab")
ycrcb = _color_round_trip("YCrCb")


def brightness_contrast(params: Params) -> List[str]:
    alpha, beta = transforms.linear_coefficients(params)
    return [
        f"alpha, beta = {literal(alpha)}, {literal(beta)}  # contrast / 100, (brightness - 100) * 2.55",
        "processed_image = cv2.addWeighted(processed_image, alpha, processed_image, 0, beta)",
    ]


def gamma(params: Params) -> List[str]:
    value = float(params["gamma"])
    return [
        f"table = np.floor(np.round(np.power(np.arange(256) / 255.0, {literal(value)}) * 255.0, 6)).astype(np.uint8)",
        "processed_image = cv2.LUT(processed_image, table)",
    ]


def hist_eq(params: Params) -> List[str]:
    return [
        "ycrcb = cv2.cvtColor(processed_image, cv2.COLOR_BGR2YCrCb)",
        "ycrcb[:, :, 0] = cv2.equalizeHist(ycrcb[:, :, 0])",
        "processed_image = cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2BGR)",
    ]


def gaussian_blur(params: Params) -> List[str]:
    size = transforms.odd_kernel_size(params["blur"])
    return [f"processed_image = cv2.GaussianBlur(processed_image, ({size}, {size}), 0)"]


def median_blur(params: Params) -> List[str]:
    size = transforms.odd_kernel_size(params["blur"])
    return [f"processed_image = cv2.medianBlur(processed_image, {size})"]


def bilateral(params: Params) -> List[str]:
    diameter, sigma_color, sigma_space = transforms.bilateral_settings(params)
    return [
        "processed_image = cv2.bilateralFilter("
        f"processed_image, {diameter}, {literal(sigma_color)}, {literal(sigma_space)})"
    ]


def nl_means(params: Params) -> List[str]:
    strength = literal(float(params["nl_strength"]))
    return [
        f"processed_image = cv2.fastNlMeansDenoisingColored(processed_image, None, {strength}, {strength}, 7, 21)"
    ]


def canny(params: Params) -> List[str]:
    return _gray_round_trip(
        f"gray = cv2.Canny(gray, {literal(params['canny_threshold1'])}, {literal(params['canny_threshold2'])})"
    )


def sobel(params: Params) -> List[str]:
    return _gray_round_trip(
        f"gradient = cv2.Sobel(gray, cv2.CV_16S, {int(params['sobel_dx'])}, {int(params['sobel_dy'])})",
        "gray = cv2.convertScaleAbs(gradient)",
    )


def laplacian(params: Params) -> List[str]:
    return _gray_round_trip(
        "response = cv2.Laplacian(gray, cv2.CV_16S)",
        "gray = cv2.convertScaleAbs(response)",
    )


def simple_thresh(params: Params) -> List[str]:
    return _gray_round_trip(
        f"_, gray = cv2.threshold(gray, {literal(params['threshold'])}, 255, cv2.THRESH_BINARY)"
    )


def adaptive_thresh(params: Params) -> List[str]:
    return _gray_round_trip(
        "gray = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, "
        f"{int(params['adaptive_block_size'])}, {literal(params['adaptive_c'])})"
    )


def otsu(params: Params) -> List[str]:
    return _gray_round_trip(
        "_, gray = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)"
    )


def _morphology(call: str) -> Any:
    def emit(params: Params) -> List[str]:
        size = int(params["morph_kernel_size"])
        return [
            f"kernel = cv2.getStructuringElement(cv2.MORPH_RECT, ({size}, {size}))",
            f"processed_image = {call}",
        ]

    return emit


erode = _morphology("cv2.erode(processed_image, kernel)")
dilate = _morphology("cv2.dilate(processed_image, kernel)")
morph_open = _morphology("cv2.morphologyEx(processed_image, cv2.MORPH_OPEN, kernel)")
morph_close = _morphology("cv2.morphologyEx(processed_image, cv2.MORPH_CLOSE, kernel)")


def translate(params: Params) -> List[str]:
    return [
        "height, width = processed_image.shape[:2]",
        f"matrix = np.float32([[1, 0, {literal(params['translate_x'])}], [0, 1, {literal(params['translate_y'])}]])",
        "processed_image = cv2.warpAffine(processed_image, matrix, (width, height))",
    ]


def draw_text(params: Params) -> List[str]:
    red, green, blue = transforms.parse_hex_color(params["text_color"])
    position = (int(params["text_x"]), int(params["text_y"]))
    return [
        f"cv2.putText(processed_image, {literal(params['text'])}, {literal(position)}, "
        f"cv2.FONT_HERSHEY_SIMPLEX, {literal(transforms.text_scale(params))}, "
        f"{literal((blue, green, red))}, 2)"
    ]


__all__ = ["literal"]
