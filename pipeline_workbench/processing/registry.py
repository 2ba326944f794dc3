"""Single registry of operation variants.

Each catalog identifier maps to one :class:`OperationVariant` declaring both
how the executor applies it and how the code synthesizer exports it.  An
operation either has an emitter or an explicit ``export_omission`` reason,
and an operation the executor cannot perform is registered with the
identity pass rather than left out.  :func:`validate_registry` runs at import
time so a catalog entry without a variant fails loudly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from . import catalog, emitters, transforms


Transform = Callable[[Any, np.ndarray, Mapping[str, Any]], Optional[np.ndarray]]
Emitter = Callable[[Mapping[str, Any]], List[str]]


class RegistryError(RuntimeError):
    """Raised when the registry and the catalog disagree."""


@dataclass(frozen=True)
class OperationVariant:
    """Executor and exporter behaviour for one catalog operation."""

    identifier: str
    transform: Transform
    implemented: bool = True
    inplace: bool = False
    emitter: Optional[Emitter] = None
    export_omission: str = ""

    @property
    def descriptor(self) -> catalog.OperationDescriptor:
        return catalog.get_operation(self.identifier)

    @property
    def exportable(self) -> bool:
        return self.emitter is not None


def _variant(
    identifier: str,
    transform: Transform,
    emitter: Emitter,
    *,
    inplace: bool = False,
) -> OperationVariant:
    return OperationVariant(identifier, transform, inplace=inplace, emitter=emitter)


def _identity(identifier: str, reason: str) -> OperationVariant:
    return OperationVariant(
        identifier,
        transforms.identity_pass,
        implemented=False,
        inplace=True,
        export_omission=reason,
    )


_T = transforms
_E = emitters

_VARIANTS: Tuple[OperationVariant, ...] = (
    _variant("grayscale", _T.grayscale, _E.grayscale, inplace=True),
    _variant("resize", _T.resize, _E.resize),
    _variant("crop", _T.crop, _E.crop),
    _variant("flip", _T.flip, _E.flip),
    _variant("rotate", _T.rotate, _E.rotate),
    _variant("hsv", _T.hsv, _E.hsv, inplace=True),
    _variant("lab", _T.lab, _E.lab, inplace=True),
    _variant("ycrcb", _T.ycrcb, _E.ycrcb, inplace=True),
    _identity("hed", "OpenCV has no HED colour conversion"),
    _identity("cmyk", "OpenCV has no CMYK colour conversion"),
    _variant("brightness", _T.brightness_contrast, _E.brightness_contrast, inplace=True),
    _variant("contrast", _T.brightness_contrast, _E.brightness_contrast, inplace=True),
    _variant("gamma", _T.gamma, _E.gamma, inplace=True),
    _variant("hist_eq", _T.hist_eq, _E.hist_eq, inplace=True),
    _variant("gaussian_blur", _T.gaussian_blur, _E.gaussian_blur),
    _variant("median_blur", _T.median_blur, _E.median_blur),
    _variant("bilateral", _T.bilateral, _E.bilateral, inplace=True),
    _variant("nl_means", _T.nl_means, _E.nl_means, inplace=True),
    _variant("canny", _T.canny, _E.canny, inplace=True),
    _variant("sobel", _T.sobel, _E.sobel, inplace=True),
    _variant("laplacian", _T.laplacian, _E.laplacian, inplace=True),
    _variant("simple_thresh", _T.simple_thresh, _E.simple_thresh, inplace=True),
    _variant("adaptive_thresh", _T.adaptive_thresh, _E.adaptive_thresh, inplace=True),
    _variant("otsu", _T.otsu, _E.otsu, inplace=True),
    _variant("erode", _T.erode, _E.erode),
    _variant("dilate", _T.dilate, _E.dilate),
    _variant("open", _T.morph_open, _E.morph_open),
    _variant("close", _T.morph_close, _E.morph_close),
    _variant("translate", _T.translate, _E.translate),
    _identity("perspective", "needs four source/destination point pairs"),
    _identity("affine", "needs three source/destination point pairs"),
    _identity("add_weighted", "needs a second input image"),
    _identity("find_contours", "contour drawing is not implemented"),
    _variant("draw_text", _T.draw_text, _E.draw_text, inplace=True),
    _identity("feature_detect", "feature detectors are not implemented"),
)


def _build_registry(variants: Tuple[OperationVariant, ...]) -> Dict[str, OperationVariant]:
    registry: Dict[str, OperationVariant] = {}
    for variant in variants:
        if variant.identifier in registry:
            raise RegistryError(f"Operation '{variant.identifier}' registered twice")
        registry[variant.identifier] = variant
    return registry


REGISTRY: Dict[str, OperationVariant] = _build_registry(_VARIANTS)


def validate_registry(
    registry: Mapping[str, OperationVariant] = REGISTRY,
    operations: Mapping[str, catalog.OperationDescriptor] = catalog.OPERATIONS,
) -> None:
    """Check the registry covers the catalog exactly."""

    missing = sorted(set(operations) - set(registry))
    if missing:
        raise RegistryError(f"Catalog operations without a variant: {', '.join(missing)}")
    unknown = sorted(set(registry) - set(operations))
    if unknown:
        raise RegistryError(f"Variants for unknown operations: {', '.join(unknown)}")
    for variant in registry.values():
        if variant.emitter is None and not variant.export_omission:
            raise RegistryError(
                f"Operation '{variant.identifier}' has no emitter and no recorded export omission"
            )
        if variant.emitter is not None and variant.export_omission:
            raise RegistryError(
                f"Operation '{variant.identifier}' has both an emitter and an export omission"
            )


def get_variant(identifier: str) -> OperationVariant:
    try:
        return REGISTRY[identifier]
    except KeyError:
        raise catalog.UnknownOperationError(identifier) from None


def unsupported_operations() -> Tuple[str, ...]:
    """Identifiers handled by the identity pass."""

    return tuple(key for key, variant in REGISTRY.items() if not variant.implemented)


def export_omissions() -> Dict[str, str]:
    """Identifiers left out of exported scripts, with the reviewed reason."""

    return {
        key: variant.export_omission
        for key, variant in REGISTRY.items()
        if variant.emitter is None
    }


validate_registry()


__all__ = [
    "OperationVariant",
    "REGISTRY",
    "RegistryError",
    "export_omissions",
    "get_variant",
    "unsupported_operations",
    "validate_registry",
]
