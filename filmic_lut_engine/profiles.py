# path: filmic_lut_engine/profiles.py
"""Render profile definitions for balancing fidelity and throughput."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .sampler import INTERPOLATIONS, Interpolation


@dataclass(frozen=True, slots=True)
class RenderProfile:
    """Describe output size and sampling trade-offs for a batch run.

    - `width` / `height`: frame size every batch entry is rendered at.
    - `interpolation`: LUT sampling method used by both stages.
    - `lut_size`: lattice size used when baking reference LUTs.
    """

    name: str
    width: int = 960
    height: int = 540
    interpolation: Interpolation = "trilinear"
    lut_size: int = 33

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width and height must be positive")
        if self.interpolation not in INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of {INTERPOLATIONS}")
        if self.lut_size < 2:
            raise ValueError("lut_size must be at least 2")

    def with_size(self, width: int, height: int) -> "RenderProfile":
        """Return a copy rendering at ``width`` x ``height``."""
        return RenderProfile(self.name, width, height, self.interpolation, self.lut_size)

    def to_dict(self) -> dict:
        """Lightweight serialization for logs/debugging."""
        return {
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "interpolation": self.interpolation,
            "lut_size": self.lut_size,
        }


DEFAULT_PROFILE_NAME = "reference"


RENDER_PROFILES: Dict[str, RenderProfile] = {
    "reference": RenderProfile(name="reference"),
    "preview": RenderProfile(name="preview", width=480, height=270, lut_size=17),
    "tetrahedral": RenderProfile(name="tetrahedral", interpolation="tetrahedral"),
}


def get_profile(name: str) -> RenderProfile:
    """Return a profile by name with a clear error on unknown keys."""
    try:
        return RENDER_PROFILES[name]
    except KeyError as exc:
        available = ", ".join(sorted(RENDER_PROFILES))
        raise KeyError(f"Unknown profile {name!r}. Available: {available}") from exc


__all__ = [
    "DEFAULT_PROFILE_NAME",
    "RENDER_PROFILES",
    "RenderProfile",
    "get_profile",
]
