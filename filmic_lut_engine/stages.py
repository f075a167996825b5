# path: filmic_lut_engine/stages.py
"""View and look stages of the color pipeline.

Both stages are small state machines: :meth:`bind` records a new variant,
:meth:`recompile` makes it the active one, and :meth:`apply` refuses to run
while the bound variant differs from the compiled one.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Generic, Optional, TypeVar

import numpy as np

from .encoding import Encoding, convert, require_encoding
from .errors import StalePipelineError
from .frames import Frame
from .lut_store import Cube
from .sampler import INTERPOLATIONS, Interpolation, sample_array

LOGGER = logging.getLogger("filmic_lut_engine")

# Filmic log allocation in stops around middle grey.
FILMIC_MIDDLE_GREY = 0.18
FILMIC_LOG_MIN = -12.473931188
FILMIC_LOG_MAX = 12.526068812
_FILMIC_FLOOR = FILMIC_MIDDLE_GREY * 2.0 ** (FILMIC_LOG_MIN - 1.0)


class ViewKind(str, enum.Enum):
    NONE = "none"
    FILMIC = "filmic"
    FALSE_COLOR = "false_color"


class LookKind(str, enum.Enum):
    NONE = "none"
    VERY_HIGH_CONTRAST = "very_high_contrast"
    HIGH_CONTRAST = "high_contrast"
    MEDIUM_HIGH_CONTRAST = "medium_high_contrast"
    MEDIUM_CONTRAST = "medium_contrast"
    MEDIUM_LOW_CONTRAST = "medium_low_contrast"
    LOW_CONTRAST = "low_contrast"
    VERY_LOW_CONTRAST = "very_low_contrast"


def filmic_log_encode(linear: np.ndarray) -> np.ndarray:
    """Map scene-linear HDR values into [0, 1] on the Filmic log scale."""
    x = np.maximum(np.asarray(linear, dtype=np.float64), _FILMIC_FLOOR)
    stops = np.log2(x / FILMIC_MIDDLE_GREY)
    return np.clip((stops - FILMIC_LOG_MIN) / (FILMIC_LOG_MAX - FILMIC_LOG_MIN), 0.0, 1.0)


def filmic_log_decode(encoded: np.ndarray) -> np.ndarray:
    """Inverse of :func:`filmic_log_encode` over its [0, 1] range."""
    e = np.asarray(encoded, dtype=np.float64)
    stops = e * (FILMIC_LOG_MAX - FILMIC_LOG_MIN) + FILMIC_LOG_MIN
    return FILMIC_MIDDLE_GREY * np.power(2.0, stops)


@dataclasses.dataclass(frozen=True)
class ViewSpec:
    """Primary transform variant: ``None``, ``Filmic(lut)`` or ``FalseColor(lut)``."""

    kind: ViewKind = ViewKind.NONE
    lut: Optional[Cube] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ViewKind(self.kind))
        if (self.kind is ViewKind.NONE) != (self.lut is None):
            raise ValueError(f"View {self.kind.value!r} {'takes no' if self.lut is not None else 'requires a'} LUT")

    @classmethod
    def none(cls) -> "ViewSpec":
        return cls()

    @classmethod
    def filmic(cls, lut: Cube) -> "ViewSpec":
        return cls(ViewKind.FILMIC, lut)

    @classmethod
    def false_color(cls, lut: Cube) -> "ViewSpec":
        return cls(ViewKind.FALSE_COLOR, lut)

    @property
    def is_identity(self) -> bool:
        return self.kind is ViewKind.NONE


@dataclasses.dataclass(frozen=True)
class LookSpec:
    """Secondary grade variant: ``None`` or ``Graded(lut)`` for a named preset."""

    kind: LookKind = LookKind.NONE
    lut: Optional[Cube] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", LookKind(self.kind))
        if (self.kind is LookKind.NONE) != (self.lut is None):
            raise ValueError(f"Look {self.kind.value!r} {'takes no' if self.lut is not None else 'requires a'} LUT")

    @classmethod
    def none(cls) -> "LookSpec":
        return cls()

    @classmethod
    def graded(cls, kind: LookKind, lut: Cube) -> "LookSpec":
        return cls(kind, lut)

    @property
    def is_identity(self) -> bool:
        return self.kind is LookKind.NONE


SpecT = TypeVar("SpecT", ViewSpec, LookSpec)


class _LutStage(Generic[SpecT]):
    name = "stage"

    def __init__(self, initial: SpecT, *, interpolation: Interpolation = "trilinear") -> None:
        if interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation {interpolation!r}; choose from {INTERPOLATIONS}")
        self.interpolation = interpolation
        self._bound: SpecT = initial
        self._compiled: SpecT = initial
        self._log = LOGGER.getChild(self.name)

    @property
    def bound(self) -> SpecT:
        return self._bound

    @property
    def compiled(self) -> SpecT:
        return self._compiled

    @property
    def stale(self) -> bool:
        return self._bound != self._compiled

    @property
    def lut_size(self) -> Optional[int]:
        lut = self._bound.lut
        return None if lut is None else lut.size

    def bind(self, spec: SpecT) -> None:
        if not isinstance(spec, type(self._compiled)):
            raise TypeError(f"{self.name} expects {type(self._compiled).__name__}, got {type(spec).__name__}")
        self._bound = spec
        if self.stale:
            self._log.debug("Bound %s; recompile required", spec.kind.value)

    def recompile(self) -> SpecT:
        self._compiled = self._bound
        self._log.debug("Compiled %s", self._compiled.kind.value)
        return self._compiled

    def apply(self, frame: Frame) -> Frame:
        if self.stale:
            raise StalePipelineError(
                f"{self.name} bound to {self._bound.kind.value!r} but compiled for "
                f"{self._compiled.kind.value!r}; call recompile() before rendering"
            )
        require_encoding(frame, Encoding.LINEAR, context=self.name)
        spec = self._compiled
        if spec.is_identity:
            return frame
        assert spec.lut is not None
        return Frame(self._transform(frame.pixels, spec.lut), Encoding.LINEAR)

    def _transform(self, pixels: np.ndarray, lut: Cube) -> np.ndarray:
        raise NotImplementedError


class ViewStage(_LutStage[ViewSpec]):
    """Filmic / False Color view transform over scene-linear input."""

    name = "view"

    def __init__(self, *, interpolation: Interpolation = "trilinear") -> None:
        super().__init__(ViewSpec.none(), interpolation=interpolation)

    def _transform(self, pixels: np.ndarray, lut: Cube) -> np.ndarray:
        coords = filmic_log_encode(pixels)
        sampled = sample_array(lut, coords, interpolation=self.interpolation)
        return convert(sampled, lut.encoding, Encoding.LINEAR)


class LookStage(_LutStage[LookSpec]):
    """Contrast look applied to the view output."""

    name = "look"

    def __init__(self, *, interpolation: Interpolation = "trilinear") -> None:
        super().__init__(LookSpec.none(), interpolation=interpolation)

    def _transform(self, pixels: np.ndarray, lut: Cube) -> np.ndarray:
        coords = convert(np.clip(pixels, 0.0, 1.0), Encoding.LINEAR, lut.encoding)
        sampled = sample_array(lut, coords, interpolation=self.interpolation)
        return convert(sampled, lut.encoding, Encoding.LINEAR)


__all__ = [
    "FILMIC_LOG_MAX",
    "FILMIC_LOG_MIN",
    "FILMIC_MIDDLE_GREY",
    "LookKind",
    "LookSpec",
    "LookStage",
    "ViewKind",
    "ViewSpec",
    "ViewStage",
    "filmic_log_decode",
    "filmic_log_encode",
]
