# path: filmic_lut_engine/encoding.py
"""Linear ⇄ display (sRGB) conversions applied at stage boundaries."""

from __future__ import annotations

import enum
from typing import Any

import numpy as np

from .errors import EncodingError

# IEC 61966-2-1 constants
_SRGB_A = 0.055
_SRGB_GAMMA = 2.4
_LINEAR_CUTOFF = 0.0031308
_DISPLAY_CUTOFF = 0.04045


class Encoding(str, enum.Enum):
    """Whether samples are scene-linear or display (sRGB) encoded."""

    LINEAR = "linear"
    DISPLAY = "display"


def to_display(values: np.ndarray) -> np.ndarray:
    """linear RGB -> sRGB display encoding.

    Negative input maps to 0; values above 1 follow the curve (callers clip
    before quantizing).
    """
    x = np.maximum(np.asarray(values, dtype=np.float64), 0.0)
    encoded = np.where(
        x <= _LINEAR_CUTOFF,
        12.92 * x,
        (1 + _SRGB_A) * np.power(x, 1 / _SRGB_GAMMA) - _SRGB_A,
    )
    return encoded.astype(np.float32)


def to_linear(values: np.ndarray) -> np.ndarray:
    """sRGB display encoding -> linear RGB."""
    x = np.maximum(np.asarray(values, dtype=np.float64), 0.0)
    decoded = np.where(
        x <= _DISPLAY_CUTOFF,
        x / 12.92,
        np.power((x + _SRGB_A) / (1 + _SRGB_A), _SRGB_GAMMA),
    )
    return decoded.astype(np.float32)


def convert(values: np.ndarray, source: Encoding, target: Encoding) -> np.ndarray:
    """Convert ``values`` from ``source`` to ``target`` encoding."""
    source = Encoding(source)
    target = Encoding(target)
    if source is target:
        return np.asarray(values, dtype=np.float32)
    if target is Encoding.DISPLAY:
        return to_display(values)
    return to_linear(values)


def require_encoding(item: Any, expected: Encoding, *, context: str = "") -> None:
    """Raise :class:`EncodingError` unless ``item.encoding`` is ``expected``."""
    actual = getattr(item, "encoding", None)
    if actual is not Encoding(expected):
        where = f" in {context}" if context else ""
        raise EncodingError(
            f"Expected {Encoding(expected).value} samples{where}, got {getattr(actual, 'value', actual)!r}"
        )


__all__ = [
    "Encoding",
    "convert",
    "require_encoding",
    "to_display",
    "to_linear",
]
