# path: filmic_lut_engine/bake.py
"""Procedural LUT assets: identity, Filmic base, False Colour and contrast looks.

The baked set mirrors the asset names of :mod:`.lookup` so a fresh directory
can drive the full reference batch without external files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Literal, Union

import numpy as np

from .encoding import Encoding, to_linear
from .lookup import BASE_LUTS, LOOK_OPTIONS, LOOK_PARAMETERS
from .lut_store import Cube, save_lut
from .stages import FILMIC_LOG_MAX, FILMIC_LOG_MIN, FILMIC_MIDDLE_GREY, ViewKind, filmic_log_decode

LOGGER = logging.getLogger("filmic_lut_engine")

LutFormat = Literal["ktx2", "cube"]

_REC709_LUMA = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)

# Tone curve steepness in 1/stops and the display luminance where highlights
# start rolling off to white.
FILMIC_TONE_SLOPE = 0.35
FILMIC_DESAT_START = 0.65

# (upper bound in stops around middle grey, display RGB)
FALSE_COLOR_BANDS = (
    (-10.0, (0.0, 0.0, 0.0)),
    (-7.0, (0.16, 0.0, 0.4)),
    (-4.0, (0.0, 0.2, 1.0)),
    (-2.0, (0.0, 0.7, 0.8)),
    (-0.5, (0.2, 0.8, 0.2)),
    (0.5, (0.5, 0.5, 0.5)),
    (2.0, (0.9, 0.9, 0.0)),
    (4.0, (1.0, 0.55, 0.0)),
    (6.5, (1.0, 0.0, 0.0)),
    (np.inf, (1.0, 1.0, 1.0)),
)


def lattice(size: int) -> np.ndarray:
    """``(N, N, N, 3)`` float64 lattice coordinates indexed ``[r, g, b]``."""
    if size < 2:
        raise ValueError(f"LUT size must be at least 2; got {size}")
    axis = np.linspace(0.0, 1.0, size, dtype=np.float64)
    r, g, b = np.meshgrid(axis, axis, axis, indexing="ij")
    return np.stack([r, g, b], axis=-1)


def bake_cube(
    size: int,
    transform: Callable[[np.ndarray], np.ndarray],
    *,
    encoding: Encoding = Encoding.LINEAR,
    title: str = "",
) -> Cube:
    """Evaluate ``transform`` over the lattice and wrap the result in a Cube."""
    return Cube(transform(lattice(size)), encoding, title=title)


def identity_cube(size: int, encoding: Encoding = Encoding.LINEAR) -> Cube:
    return bake_cube(size, lambda coords: coords, encoding=encoding, title="identity")


def _filmic_transform(coords: np.ndarray) -> np.ndarray:
    scene = filmic_log_decode(coords)
    stops = np.log2(scene / FILMIC_MIDDLE_GREY)

    def curve(s):
        return 1.0 / (1.0 + np.exp(-FILMIC_TONE_SLOPE * s))

    low, high = curve(FILMIC_LOG_MIN), curve(FILMIC_LOG_MAX)
    display = (curve(stops) - low) / (high - low)

    luma = display @ _REC709_LUMA
    mix = np.clip((luma - FILMIC_DESAT_START) / (1.0 - FILMIC_DESAT_START), 0.0, 1.0) ** 2
    display = display + (luma[..., None] - display) * mix[..., None]
    return to_linear(np.clip(display, 0.0, 1.0))


def filmic_base_cube(size: int = 33) -> Cube:
    """Filmic view over log-shaped input; stored as display-referred linear."""
    return bake_cube(size, _filmic_transform, encoding=Encoding.LINEAR, title="Filmic desat65")


def _false_color_transform(coords: np.ndarray) -> np.ndarray:
    scene = filmic_log_decode(coords)
    stops = np.log2(np.maximum(scene @ _REC709_LUMA, 1e-12) / FILMIC_MIDDLE_GREY)
    bounds = np.array([upper for upper, _ in FALSE_COLOR_BANDS[:-1]], dtype=np.float64)
    colors = np.array([rgb for _, rgb in FALSE_COLOR_BANDS], dtype=np.float64)
    return colors[np.searchsorted(bounds, stops, side="right")]


def false_color_cube(size: int = 33) -> Cube:
    """Exposure bands around middle grey; stored display-encoded."""
    return bake_cube(size, _false_color_transform, encoding=Encoding.DISPLAY, title="Filmic False Colour")


def contrast_look_cube(slope: float, power: float, size: int = 33) -> Cube:
    """Contrast look over display values pivoting on 0.5.

    ``power`` bends the input before ``slope`` scales its distance from the
    pivot; larger slopes give harder contrast.
    """
    if power <= 0:
        raise ValueError("power must be positive")

    def transform(coords: np.ndarray) -> np.ndarray:
        return np.clip(0.5 + (np.power(coords, power) - 0.5) * (0.5 + slope), 0.0, 1.0)

    return bake_cube(size, transform, encoding=Encoding.DISPLAY, title=f"Filmic to {slope:.2f} {power:g}")


def bake_reference_luts(
    directory: Union[str, Path],
    *,
    size: int = 33,
    fmt: LutFormat = "ktx2",
    **ktx2_options,
) -> List[Path]:
    """Write both base LUTs and all contrast looks into ``directory``.

    ``ktx2`` output uses the exact names the batch lookup expects; ``cube``
    output swaps the extension for interchange with other tools. Extra keyword
    arguments are passed to :func:`.lut_store.encode_ktx2`.
    """
    if fmt not in ("ktx2", "cube"):
        raise ValueError(f"Unsupported LUT format {fmt!r}; choose 'ktx2' or 'cube'")
    root = Path(directory)
    cubes = [
        (BASE_LUTS[ViewKind.FILMIC], filmic_base_cube(size)),
        (BASE_LUTS[ViewKind.FALSE_COLOR], false_color_cube(size)),
    ]
    for look, name in LOOK_OPTIONS.items():
        slope, power = LOOK_PARAMETERS[look]
        cubes.append((name, contrast_look_cube(slope, power, size)))

    written = []
    for name, cube in cubes:
        target = (root / name).with_suffix(f".{fmt}")
        written.append(save_lut(target, cube, **(ktx2_options if fmt == "ktx2" else {})))
        LOGGER.info("Baked %s (%d^3, %s)", target.name, size, cube.encoding.value)
    return written


__all__ = [
    "FALSE_COLOR_BANDS",
    "bake_cube",
    "bake_reference_luts",
    "contrast_look_cube",
    "false_color_cube",
    "filmic_base_cube",
    "identity_cube",
    "lattice",
]
