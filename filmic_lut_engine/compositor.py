# path: filmic_lut_engine/compositor.py
"""Render → view → look → display-encode composition.

The :class:`Compositor` owns one mutable pipeline (a view stage and a look
stage) that is rebound for every batch entry. Bindings only take effect after
:meth:`Compositor.recompile`; rendering against anything else raises
:class:`~.errors.StalePipelineError`.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Optional

import numpy as np

from .encoding import Encoding, require_encoding, to_display
from .errors import LutShapeError, StalePipelineError
from .frames import Frame, OutputImage
from .sampler import Interpolation
from .scene import BackgroundRasterizer, Camera, Scene, SceneRasterizer
from .stages import LookSpec, LookStage, ViewSpec, ViewStage

LOGGER = logging.getLogger("filmic_lut_engine")


@dataclasses.dataclass(frozen=True)
class PipelineConfig:
    """Everything one render depends on."""

    width: int
    height: int
    view: ViewSpec = dataclasses.field(default_factory=ViewSpec.none)
    look: LookSpec = dataclasses.field(default_factory=LookSpec.none)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Frame size must be positive; got {self.width}x{self.height}")


def quantize_display(display: np.ndarray) -> np.ndarray:
    """[0, 1] display values -> uint8 (round half to even); NaN encodes as 0."""
    finite = np.nan_to_num(display, nan=0.0, posinf=1.0, neginf=0.0)
    return np.rint(np.clip(finite, 0.0, 1.0) * 255.0).astype(np.uint8)


class Compositor:
    """Sequences the rasterizer and the two LUT stages for fixed-size frames."""

    def __init__(
        self,
        width: int,
        height: int,
        *,
        rasterizer: Optional[SceneRasterizer] = None,
        scene: Optional[Scene] = None,
        camera: Optional[Camera] = None,
        interpolation: Interpolation = "trilinear",
    ) -> None:
        self.width = int(width)
        self.height = int(height)
        self.rasterizer = rasterizer if rasterizer is not None else BackgroundRasterizer(width, height)
        if (self.rasterizer.width, self.rasterizer.height) != (self.width, self.height):
            raise ValueError(
                f"Rasterizer is {self.rasterizer.width}x{self.rasterizer.height}; "
                f"compositor expects {self.width}x{self.height}"
            )
        self.scene = scene if scene is not None else Scene()
        self.camera = camera if camera is not None else Camera()
        self.view = ViewStage(interpolation=interpolation)
        self.look = LookStage(interpolation=interpolation)
        self._compiled: Optional[PipelineConfig] = None
        self._log = LOGGER.getChild("compositor")

    # --- configuration ------------------------------------------------------

    @property
    def stale(self) -> bool:
        return self._compiled is None or self.view.stale or self.look.stale

    def bind(self, config: PipelineConfig) -> None:
        """Bind both stages for ``config``; :meth:`recompile` must follow."""
        if (config.width, config.height) != (self.width, self.height):
            raise ValueError(
                f"Config is {config.width}x{config.height}; compositor renders {self.width}x{self.height}"
            )
        self.view.bind(config.view)
        self.look.bind(config.look)

    def recompile(self) -> PipelineConfig:
        """Validate the bound stages and make them the active pipeline."""
        sizes = {size for size in (self.view.lut_size, self.look.lut_size) if size is not None}
        if len(sizes) > 1:
            raise LutShapeError(
                f"View LUT is {self.view.lut_size}^3 but look LUT is {self.look.lut_size}^3; "
                "all LUTs in one pipeline must share a size"
            )
        view = self.view.recompile()
        look = self.look.recompile()
        self._compiled = PipelineConfig(self.width, self.height, view, look)
        self._log.debug("Recompiled view=%s look=%s", view.kind.value, look.kind.value)
        return self._compiled

    def _check_current(self, config: PipelineConfig) -> None:
        if self.stale:
            raise StalePipelineError("Pipeline bindings changed; call recompile() before rendering")
        if config != self._compiled:
            raise StalePipelineError("Render requested for a configuration that was never compiled")

    # --- rendering ------------------------------------------------------------

    def _grade(self, radiance: np.ndarray) -> Frame:
        frame = Frame(radiance, Encoding.LINEAR)
        if (frame.width, frame.height) != (self.width, self.height):
            raise ValueError(
                f"Rasterizer returned {frame.width}x{frame.height}; expected {self.width}x{self.height}"
            )
        frame = self.view.apply(frame)
        return self.look.apply(frame)

    def render(self, config: PipelineConfig) -> Frame:
        """Rasterize then apply the view and look stages; returns a linear frame."""
        self._check_current(config)
        radiance = self.rasterizer.render_scene(self.camera, self.scene)
        return self._grade(radiance)

    async def render_async(self, config: PipelineConfig) -> Frame:
        """As :meth:`render`, awaiting the rasterizer off the event loop."""
        self._check_current(config)
        radiance = await asyncio.to_thread(self.rasterizer.render_scene, self.camera, self.scene)
        # Bindings may not change while the rasterizer was busy.
        self._check_current(config)
        return self._grade(radiance)

    def encode(self, frame: Frame, entry_id: str = "") -> OutputImage:
        """Display-encode a linear frame into an 8-bit image."""
        require_encoding(frame, Encoding.LINEAR, context="display encode")
        return OutputImage(entry_id, quantize_display(to_display(frame.pixels)))


__all__ = [
    "Compositor",
    "PipelineConfig",
    "quantize_display",
]
