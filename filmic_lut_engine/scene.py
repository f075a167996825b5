# path: filmic_lut_engine/scene.py
"""Scene description and the background rasterizer.

The compositor only needs ``render_scene(camera, scene)`` returning a
scene-linear ``(H, W, 3)`` array; anything that satisfies
:class:`SceneRasterizer` can stand in for the bundled rasterizer.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from .encoding import to_linear

LOGGER = logging.getLogger("filmic_lut_engine")


def hex_to_linear(value: int) -> Tuple[float, float, float]:
    """0xRRGGBB sRGB color -> linear RGB triple."""
    rgb = np.array([(value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF], dtype=np.float32) / 255.0
    r, g, b = (float(v) for v in to_linear(rgb))
    return r, g, b


DEFAULT_CLEAR_COLOR = hex_to_linear(0x4285F4)


@dataclasses.dataclass(frozen=True)
class Camera:
    """Orthographic camera looking at the scene background.

    ``exposure`` is in stops and scales the rasterized radiance.
    """

    left: float = -0.5
    right: float = 0.5
    top: float = 0.5
    bottom: float = -0.5
    exposure: float = 0.0

    def __post_init__(self) -> None:
        if self.right <= self.left or self.top <= self.bottom:
            raise ValueError("Camera frustum must have positive width and height")


@dataclasses.dataclass(frozen=True, eq=False)
class Scene:
    """An HDR background (scene-linear) or a flat clear color."""

    background: Optional[np.ndarray] = None
    clear_color: Tuple[float, float, float] = DEFAULT_CLEAR_COLOR

    def __post_init__(self) -> None:
        if self.background is not None:
            bg = np.asarray(self.background, dtype=np.float32)
            if bg.ndim != 3 or bg.shape[-1] != 3:
                raise ValueError(f"Scene background must be (H, W, 3); got {bg.shape!r}")
            bg = bg.copy()
            bg.setflags(write=False)
            object.__setattr__(self, "background", bg)


@runtime_checkable
class SceneRasterizer(Protocol):
    width: int
    height: int

    def render_scene(self, camera: Camera, scene: Scene) -> np.ndarray:
        ...


def _bilinear_at(arr: np.ndarray, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Sample ``arr`` at column positions ``x`` and row positions ``y``."""
    height, width = arr.shape[:2]
    x = np.clip(x, 0, width - 1).astype(np.float32)
    y = np.clip(y, 0, height - 1).astype(np.float32)
    x0 = np.floor(x).astype(int)
    x1 = np.clip(x0 + 1, 0, width - 1)
    y0 = np.floor(y).astype(int)
    y1 = np.clip(y0 + 1, 0, height - 1)
    x_weight = (x - x0).astype(np.float32).reshape(1, -1, 1)
    y_weight = (y - y0).astype(np.float32).reshape(-1, 1, 1)

    Ia = arr[np.ix_(y0, x0)]
    Ib = arr[np.ix_(y0, x1)]
    Ic = arr[np.ix_(y1, x0)]
    Id = arr[np.ix_(y1, x1)]

    top = Ia * (1.0 - x_weight) + Ib * x_weight
    bottom = Ic * (1.0 - x_weight) + Id * x_weight
    return (top * (1.0 - y_weight) + bottom * y_weight).astype(np.float32)


class BackgroundRasterizer:
    """Stretches the scene background over a fixed-size viewport."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive; got {width}x{height}")
        self.width = int(width)
        self.height = int(height)

    def render_scene(self, camera: Camera, scene: Scene) -> np.ndarray:
        if scene.background is None:
            out = np.empty((self.height, self.width, 3), dtype=np.float32)
            out[...] = np.asarray(scene.clear_color, dtype=np.float32)
        else:
            out = self._project(camera, scene.background)
        if camera.exposure:
            factor = float(2.0 ** camera.exposure)
            if LOGGER.isEnabledFor(logging.DEBUG):
                LOGGER.debug("Camera exposure: %s stops (factor %.3f)", camera.exposure, factor)
            out = out * np.float32(factor)
        return np.ascontiguousarray(out, dtype=np.float32)

    def _project(self, camera: Camera, background: np.ndarray) -> np.ndarray:
        # The background spans [-0.5, 0.5] on both axes; the frustum picks the window.
        height, width = background.shape[:2]
        x = np.linspace((camera.left + 0.5) * (width - 1), (camera.right + 0.5) * (width - 1), self.width)
        y = np.linspace((0.5 - camera.top) * (height - 1), (0.5 - camera.bottom) * (height - 1), self.height)
        return _bilinear_at(background, x, y)


def reference_test_scene(width: int, height: int) -> Scene:
    """Deterministic HDR chart: exposure ramp across x, colored bands down y.

    The ramp spans -10..+10 stops around middle grey so every Filmic band and
    every false-color bucket is represented.
    """
    stops = np.linspace(-10.0, 10.0, width, dtype=np.float64)
    ramp = 0.18 * np.power(2.0, stops)
    tints = np.array(
        [
            [1.0, 1.0, 1.0],
            [1.0, 0.25, 0.2],
            [0.3, 1.0, 0.35],
            [0.25, 0.4, 1.0],
            [1.0, 0.85, 0.4],
            [0.6, 0.3, 0.9],
        ],
        dtype=np.float64,
    )
    band = (np.arange(height) * len(tints)) // max(height, 1)
    background = ramp[None, :, None] * tints[band][:, None, :]
    return Scene(background=background.astype(np.float32))


__all__ = [
    "BackgroundRasterizer",
    "Camera",
    "DEFAULT_CLEAR_COLOR",
    "Scene",
    "SceneRasterizer",
    "hex_to_linear",
    "reference_test_scene",
]
