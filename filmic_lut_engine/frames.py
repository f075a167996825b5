# path: filmic_lut_engine/frames.py
"""Frame containers passed between pipeline stages."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .encoding import Encoding
from .io_utils import save_output_image


def _readonly_view(arr: np.ndarray) -> np.ndarray:
    view = arr.view()
    view.setflags(write=False)
    return view


@dataclasses.dataclass(frozen=True, eq=False)
class Frame:
    """(H, W, 3) float32 samples with an encoding tag.

    Frames coming out of the renderer are scene-linear and unbounded.
    """

    pixels: np.ndarray
    encoding: Encoding = Encoding.LINEAR

    def __post_init__(self) -> None:
        arr = np.asarray(self.pixels)
        if arr.ndim != 3 or arr.shape[-1] != 3:
            raise ValueError(f"Expected (H, W, 3) frame; got shape {arr.shape!r}")
        if arr.dtype != np.float32:
            arr = arr.astype(np.float32)
        object.__setattr__(self, "pixels", _readonly_view(arr))
        object.__setattr__(self, "encoding", Encoding(self.encoding))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclasses.dataclass(frozen=True, eq=False)
class OutputImage:
    """Display-encoded 8-bit RGB image produced for one batch entry."""

    entry_id: str
    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = np.asarray(self.pixels)
        if arr.ndim != 3 or arr.shape[-1] != 3 or arr.dtype != np.uint8:
            raise ValueError(f"Expected (H, W, 3) uint8 image; got {arr.dtype} {arr.shape!r}")
        object.__setattr__(self, "pixels", _readonly_view(arr))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def same_pixels(self, other: "OutputImage") -> bool:
        return bool(np.array_equal(self.pixels, other.pixels))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    def save(self, destination: Union[str, "os.PathLike[str]"]) -> Path:
        return save_output_image(destination, self)


__all__ = ["Frame", "OutputImage"]
