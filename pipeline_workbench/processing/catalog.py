"""Declarative catalog of pipeline operations and their parameters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple


class UnknownOperationError(KeyError):
    """Raised when an operation identifier is not present in the catalog."""

    def __init__(self, identifier: str) -> None:
        super().__init__(identifier)
        self.identifier = identifier

    def __str__(self) -> str:
        return f"Unknown operation '{self.identifier}'"


class ParameterKind(Enum):
    """Supported value kinds for operation parameters."""

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    CHOICE = "choice"
    POINTS = "points"


def _coerce_points(value: Any) -> Tuple[Tuple[float, float], ...]:
    points = []
    for point in value:
        x, y = point
        points.append((float(x), float(y)))
    return tuple(points)


@dataclass(frozen=True)
class ParameterSpec:
    """Schema entry for a single parameter key."""

    key: str
    default: Any
    kind: ParameterKind
    description: str = ""
    choices: Tuple[str, ...] = ()

    def coerce(self, value: Any) -> Any:
        """Return ``value`` converted to this parameter's kind.

        Raises :class:`ValueError` when the value cannot be represented.
        """

        try:
            if self.kind is ParameterKind.INTEGER:
                return int(round(float(value)))
            if self.kind is ParameterKind.FLOAT:
                return float(value)
            if self.kind is ParameterKind.STRING:
                return str(value)
            if self.kind is ParameterKind.POINTS:
                return _coerce_points(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for '{self.key}': {value!r}") from exc
        text = str(value)
        if text not in self.choices:
            raise ValueError(
                f"Invalid value for '{self.key}': {value!r} (expected one of {', '.join(self.choices)})"
            )
        return text


@dataclass(frozen=True)
class OperationDescriptor:
    """Immutable description of one operation in the catalog."""

    identifier: str
    label: str
    params: Tuple[str, ...]
    category: str
    coupled: Tuple[str, ...] = ()

    @property
    def resolved_keys(self) -> Tuple[str, ...]:
        """Keys present in the effective parameter set of a step."""

        return self.params + tuple(key for key in self.coupled if key not in self.params)


_I = ParameterKind.INTEGER
_F = ParameterKind.FLOAT

PARAMETERS: Dict[str, ParameterSpec] = {
    spec.key: spec
    for spec in (
        ParameterSpec("resize_width", 0, _I, "Target width in pixels; 0 keeps the current width"),
        ParameterSpec("resize_height", 0, _I, "Target height in pixels; 0 keeps the current height"),
        ParameterSpec("crop_x", 10.0, _F, "Left edge as a percentage of the width"),
        ParameterSpec("crop_y", 10.0, _F, "Top edge as a percentage of the height"),
        ParameterSpec("crop_width", 80.0, _F, "Width as a percentage of the width"),
        ParameterSpec("crop_height", 80.0, _F, "Height as a percentage of the height"),
        ParameterSpec(
            "flip_direction",
            "vertical",
            ParameterKind.CHOICE,
            "Mirror axis",
            choices=("horizontal", "vertical"),
        ),
        ParameterSpec("rotate_angle", 0.0, _F, "Clockwise quarter turns are lossless; other angles rotate counter-clockwise about the centre"),
        ParameterSpec("brightness", 110.0, _F, "100 leaves brightness unchanged"),
        ParameterSpec("contrast", 120.0, _F, "100 leaves contrast unchanged"),
        ParameterSpec("gamma", 1.0, _F, "Exponent applied to normalised intensities"),
        ParameterSpec("blur", 5, _I, "Kernel size; even values are rounded up to odd"),
        ParameterSpec("bilateral_diameter", 9, _I, "Pixel neighbourhood diameter"),
        ParameterSpec("bilateral_sigma_color", 75.0, _F),
        ParameterSpec("bilateral_sigma_space", 75.0, _F),
        ParameterSpec("nl_strength", 10.0, _F, "Filter strength for luminance and colour"),
        ParameterSpec("canny_threshold1", 50.0, _F),
        ParameterSpec("canny_threshold2", 150.0, _F),
        ParameterSpec("sobel_dx", 1, _I, "Order of the x derivative"),
        ParameterSpec("sobel_dy", 0, _I, "Order of the y derivative"),
        ParameterSpec("threshold", 128.0, _F, "Pixels above this value become white"),
        ParameterSpec("adaptive_block_size", 11, _I),
        ParameterSpec("adaptive_c", 2.0, _F),
        ParameterSpec("morph_kernel_size", 3, _I, "Side length of the square structuring element"),
        ParameterSpec("translate_x", 0.0, _F),
        ParameterSpec("translate_y", 0.0, _F),
        ParameterSpec("perspective_points", (), ParameterKind.POINTS),
        ParameterSpec("affine_points", (), ParameterKind.POINTS),
        ParameterSpec("blend_alpha", 0.5, _F),
        ParameterSpec("blend_beta", 0.5, _F),
        ParameterSpec("text", "", ParameterKind.STRING),
        ParameterSpec("text_x", 10, _I),
        ParameterSpec("text_y", 30, _I),
        ParameterSpec("text_font_size", 10.0, _F, "Font scale multiplied by ten"),
        ParameterSpec("text_color", "#000000", ParameterKind.STRING, "Hex colour #rrggbb"),
    )
}


def _op(
    identifier: str,
    label: str,
    params: Iterable[str] = (),
    coupled: Iterable[str] = (),
) -> Tuple[str, str, Tuple[str, ...], Tuple[str, ...]]:
    return identifier, label, tuple(params), tuple(coupled)


_CATEGORY_TABLE = (
    (
        "Basic Operations",
        (
            _op("grayscale", "Grayscale"),
            _op("resize", "Resize", ("resize_width", "resize_height")),
            _op("crop", "Crop", ("crop_x", "crop_y", "crop_width", "crop_height")),
            _op("flip", "Flip", ("flip_direction",)),
            _op("rotate", "Rotate", ("rotate_angle",)),
        ),
    ),
    (
        "Color Spaces",
        (
            _op("hsv", "Convert to HSV"),
            _op("lab", "Convert to LAB"),
            _op("ycrcb", "Convert to YCrCb"),
            _op("hed", "Convert to HED"),
            _op("cmyk", "Convert to CMYK"),
        ),
    ),
    (
        "Point Operations",
        (
            # Brightness and contrast share one linear transform.
            _op("brightness", "Brightness Adjustment", ("brightness",), ("contrast",)),
            _op("contrast", "Contrast Adjustment", ("contrast",), ("brightness",)),
            _op("gamma", "Gamma Correction", ("gamma",)),
            _op("hist_eq", "Histogram Equalization"),
        ),
    ),
    (
        "Blurring",
        (
            _op("gaussian_blur", "Gaussian Blur", ("blur",)),
            _op("median_blur", "Median Blur", ("blur",)),
            _op(
                "bilateral",
                "Bilateral Filter",
                ("bilateral_diameter", "bilateral_sigma_color", "bilateral_sigma_space"),
            ),
            _op("nl_means", "Non-local Means Denoising", ("nl_strength",)),
        ),
    ),
    (
        "Edge Detection",
        (
            _op("canny", "Canny Edge", ("canny_threshold1", "canny_threshold2")),
            _op("sobel", "Sobel Edge", ("sobel_dx", "sobel_dy")),
            _op("laplacian", "Laplacian Edge"),
        ),
    ),
    (
        "Thresholding",
        (
            _op("simple_thresh", "Simple Threshold", ("threshold",)),
            _op("adaptive_thresh", "Adaptive Threshold", ("adaptive_block_size", "adaptive_c")),
            _op("otsu", "Otsu Threshold"),
        ),
    ),
    (
        "Morphological",
        (
            _op("erode", "Erosion", ("morph_kernel_size",)),
            _op("dilate", "Dilation", ("morph_kernel_size",)),
            _op("open", "Opening", ("morph_kernel_size",)),
            _op("close", "Closing", ("morph_kernel_size",)),
        ),
    ),
    (
        "Geometric",
        (
            _op("translate", "Translation", ("translate_x", "translate_y")),
            _op("perspective", "Perspective Transform", ("perspective_points",)),
            _op("affine", "Affine Transform", ("affine_points",)),
        ),
    ),
    (
        "Blending & Arithmetic",
        (_op("add_weighted", "AddWeighted Blend", ("blend_alpha", "blend_beta")),),
    ),
    (
        "Contours & Annotation",
        (
            _op("find_contours", "Find Contours"),
            _op(
                "draw_text",
                "Draw Text",
                ("text", "text_x", "text_y", "text_font_size", "text_color"),
            ),
            _op("feature_detect", "Feature Detection"),
        ),
    ),
)


def _build_operations() -> Dict[str, OperationDescriptor]:
    operations: Dict[str, OperationDescriptor] = {}
    for category, entries in _CATEGORY_TABLE:
        for identifier, label, params, coupled in entries:
            if identifier in operations:
                raise ValueError(
                    f"Operation '{identifier}' listed in both "
                    f"'{operations[identifier].category}' and '{category}'"
                )
            operations[identifier] = OperationDescriptor(
                identifier=identifier,
                label=label,
                params=params,
                category=category,
                coupled=coupled,
            )
    return operations


OPERATIONS: Dict[str, OperationDescriptor] = _build_operations()


def categories() -> Tuple[str, ...]:
    """Return category names in menu order."""

    return tuple(category for category, _entries in _CATEGORY_TABLE)


def operations_in(category: str) -> Tuple[str, ...]:
    """Return the operation identifiers belonging to ``category``."""

    for name, entries in _CATEGORY_TABLE:
        if name == category:
            return tuple(entry[0] for entry in entries)
    raise KeyError(f"Unknown category '{category}'")


def get_operation(identifier: str) -> OperationDescriptor:
    try:
        return OPERATIONS[identifier]
    except KeyError:
        raise UnknownOperationError(identifier) from None


def is_known(identifier: str) -> bool:
    return identifier in OPERATIONS


def parameter_keys(identifier: str) -> Tuple[str, ...]:
    return get_operation(identifier).params


def parameter_spec(key: str) -> ParameterSpec:
    return PARAMETERS[key]


def defaults_for(identifier: str) -> Dict[str, Any]:
    """Return the default value of every key in the operation's effective set."""

    descriptor = get_operation(identifier)
    return {key: PARAMETERS[key].default for key in descriptor.resolved_keys}


def coerce_parameters(identifier: str, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate authored ``values`` for ``identifier``.

    Only keys belonging to the operation's effective parameter set are
    accepted; values are converted to their declared kind.
    """

    descriptor = get_operation(identifier)
    allowed = descriptor.resolved_keys
    coerced: Dict[str, Any] = {}
    for key, value in values.items():
        if key not in allowed:
            raise KeyError(f"Operation '{identifier}' has no parameter '{key}'")
        coerced[key] = PARAMETERS[key].coerce(value)
    return coerced


def resolve_parameters(
    identifier: str, overrides: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """Return catalog defaults overridden key-by-key by ``overrides``."""

    resolved = defaults_for(identifier)
    for key, value in (overrides or {}).items():
        if key in resolved:
            resolved[key] = value
    return resolved


def validate_catalog() -> None:
    """Raise :class:`ValueError` if the catalog is internally inconsistent."""

    for descriptor in OPERATIONS.values():
        for key in descriptor.resolved_keys:
            if key not in PARAMETERS:
                raise ValueError(
                    f"Operation '{descriptor.identifier}' references undeclared parameter '{key}'"
                )
        owning = [name for name, entries in _CATEGORY_TABLE if any(e[0] == descriptor.identifier for e in entries)]
        if owning != [descriptor.category]:
            raise ValueError(
                f"Operation '{descriptor.identifier}' must belong to exactly one category"
            )
    for spec in PARAMETERS.values():
        if spec.kind is ParameterKind.CHOICE and spec.default not in spec.choices:
            raise ValueError(f"Default for '{spec.key}' is not one of its choices")


validate_catalog()


__all__ = [
    "OPERATIONS",
    "PARAMETERS",
    "OperationDescriptor",
    "ParameterKind",
    "ParameterSpec",
    "UnknownOperationError",
    "categories",
    "coerce_parameters",
    "defaults_for",
    "get_operation",
    "is_known",
    "operations_in",
    "parameter_keys",
    "parameter_spec",
    "resolve_parameters",
    "validate_catalog",
]
