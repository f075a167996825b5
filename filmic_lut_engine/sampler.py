# path: filmic_lut_engine/sampler.py
"""Trilinear and tetrahedral sampling over a :class:`~.lut_store.Cube`.

All functions accept coordinates shaped ``(..., 3)`` in ``[0, 1]``; values
outside are clamped (never wrapped) and NaN is treated as 0. Lattice-aligned
coordinates return the stored sample exactly.
"""

from __future__ import annotations

from typing import Literal, Sequence, Union

import numpy as np

from .lut_store import Cube

Interpolation = Literal["trilinear", "tetrahedral"]
INTERPOLATIONS = ("trilinear", "tetrahedral")

# Grid positions this close to an integer are treated as lattice-aligned.
_SNAP_EPSILON = 1e-9


def _grid_position(cube: Cube, coords: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return lower corner, upper corner and fractional offset in grid space."""
    x = np.asarray(coords, dtype=np.float64)
    if x.shape[-1:] != (3,):
        raise ValueError(f"Expected (..., 3) coordinates; got shape {x.shape!r}")
    x = np.nan_to_num(x, nan=0.0, posinf=1.0, neginf=0.0)
    x = np.clip(x, 0.0, 1.0)

    top = cube.size - 1
    p = x * top
    nearest = np.rint(p)
    p = np.where(np.abs(p - nearest) < _SNAP_EPSILON, nearest, p)

    i0 = np.minimum(np.floor(p), top - 1).astype(np.intp)
    frac = p - i0
    i1 = i0 + 1
    return i0, i1, frac


def _trilinear(table: np.ndarray, i0: np.ndarray, i1: np.ndarray, f: np.ndarray) -> np.ndarray:
    r0, g0, b0 = i0[..., 0], i0[..., 1], i0[..., 2]
    r1, g1, b1 = i1[..., 0], i1[..., 1], i1[..., 2]
    fr, fg, fb = f[..., 0:1], f[..., 1:2], f[..., 2:3]

    c000 = table[r0, g0, b0]
    c100 = table[r1, g0, b0]
    c010 = table[r0, g1, b0]
    c110 = table[r1, g1, b0]
    c001 = table[r0, g0, b1]
    c101 = table[r1, g0, b1]
    c011 = table[r0, g1, b1]
    c111 = table[r1, g1, b1]

    c00 = c000 * (1 - fr) + c100 * fr
    c10 = c010 * (1 - fr) + c110 * fr
    c01 = c001 * (1 - fr) + c101 * fr
    c11 = c011 * (1 - fr) + c111 * fr

    c0 = c00 * (1 - fg) + c10 * fg
    c1 = c01 * (1 - fg) + c11 * fg

    return c0 * (1 - fb) + c1 * fb


def _tetrahedral(table: np.ndarray, i0: np.ndarray, i1: np.ndarray, f: np.ndarray) -> np.ndarray:
    r0, g0, b0 = i0[..., 0], i0[..., 1], i0[..., 2]
    r1, g1, b1 = i1[..., 0], i1[..., 1], i1[..., 2]
    fr, fg, fb = f[..., 0:1], f[..., 1:2], f[..., 2:3]

    c000 = table[r0, g0, b0]
    c111 = table[r1, g1, b1]
    c100 = table[r1, g0, b0]
    c010 = table[r0, g1, b0]
    c001 = table[r0, g0, b1]
    c110 = table[r1, g1, b0]
    c101 = table[r1, g0, b1]
    c011 = table[r0, g1, b1]

    # One tetrahedron per ordering of the fractional offsets; the orderings
    # are mutually exclusive and fb >= fg >= fr is the fallback.
    cases = [
        ((fr > fg) & (fg > fb), fr, fg, fb, c100, c110),
        ((fr > fb) & (fb >= fg), fr, fb, fg, c100, c101),
        ((fb >= fr) & (fr > fg), fb, fr, fg, c001, c101),
        ((fg >= fr) & (fr > fb), fg, fr, fb, c010, c110),
        ((fg > fb) & (fb >= fr), fg, fb, fr, c010, c011),
    ]
    w1, w2, w3 = fb, fg, fr
    v1, v2 = c001, c011
    for mask, a, b, c, va, vb in cases:
        w1 = np.where(mask, a, w1)
        w2 = np.where(mask, b, w2)
        w3 = np.where(mask, c, w3)
        v1 = np.where(mask, va, v1)
        v2 = np.where(mask, vb, v2)

    return (1 - w1) * c000 + (w1 - w2) * v1 + (w2 - w3) * v2 + w3 * c111


def sample_array(
    cube: Cube,
    coords: np.ndarray,
    *,
    interpolation: Interpolation = "trilinear",
) -> np.ndarray:
    """Sample ``cube`` at every coordinate of an ``(..., 3)`` array; float32 output."""
    if interpolation not in INTERPOLATIONS:
        raise ValueError(f"Unknown interpolation {interpolation!r}; choose from {INTERPOLATIONS}")
    i0, i1, frac = _grid_position(cube, coords)
    table = cube.table.astype(np.float64, copy=False)
    if interpolation == "tetrahedral":
        out = _tetrahedral(table, i0, i1, frac)
    else:
        out = _trilinear(table, i0, i1, frac)
    return out.astype(np.float32)


def sample(
    cube: Cube,
    coordinate: Union[Sequence[float], np.ndarray],
    *,
    interpolation: Interpolation = "trilinear",
) -> np.ndarray:
    """Sample ``cube`` at one ``(r, g, b)`` coordinate."""
    point = np.asarray(coordinate, dtype=np.float64).reshape(3)
    return sample_array(cube, point, interpolation=interpolation)


__all__ = [
    "INTERPOLATIONS",
    "Interpolation",
    "sample",
    "sample_array",
]
