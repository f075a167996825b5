# path: filmic_lut_engine/io_utils.py
"""I/O primitives for scene backgrounds, rendered images and reference checks."""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import os
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

import numpy as np
from PIL import Image

from .encoding import to_linear

try:  # Optional float TIFF reader/writer
    import tifffile  # type: ignore
except (ImportError, ModuleNotFoundError):  # pragma: no cover - optional dependency
    tifffile = None  # type: ignore[assignment]

try:  # Optional EXR/Radiance HDR reader
    import imageio.v3 as iio  # type: ignore
except (ImportError, ModuleNotFoundError):  # pragma: no cover - optional dependency
    iio = None  # type: ignore[assignment]

if TYPE_CHECKING:  # pragma: no cover
    from .frames import OutputImage

LOGGER = logging.getLogger("filmic_lut_engine")

PathLike = Union[str, "os.PathLike[str]"]
_TIFF_SUFFIXES = {".tif", ".tiff"}
_HDR_SUFFIXES = {".exr", ".hdr"}


@dataclasses.dataclass
class ProcessingContext:
    """Context manager staging output beside the destination."""
    destination: Path
    suffix: str = ".tmp"

    def __post_init__(self) -> None:
        self.destination = Path(self.destination)
        self._staged_path: Optional[Path] = None

    def _temp_path(self) -> Path:
        unique = uuid.uuid4().hex
        # Keep the real extension last so writers that sniff it still work.
        name = f".{self.destination.stem}{self.suffix}-{unique}{self.destination.suffix}"
        return self.destination.parent / name

    def __enter__(self) -> Path:
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        self._staged_path = self._temp_path()
        return self._staged_path

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._staged_path is None:
            return
        staged = self._staged_path
        self._staged_path = None
        if exc_type is None:
            try:
                os.replace(staged, self.destination)
            except Exception:
                with contextlib.suppress(Exception):
                    staged.unlink()
                raise
        else:
            with contextlib.suppress(FileNotFoundError):
                staged.unlink()


def _as_rgb(arr: np.ndarray) -> np.ndarray:
    if arr.ndim == 2:
        return np.repeat(arr[:, :, None], 3, axis=2)
    if arr.ndim == 3 and arr.shape[2] in (3, 4):
        return arr[:, :, :3]
    if arr.ndim == 3 and arr.shape[2] in (1, 2):
        return np.repeat(arr[:, :, :1], 3, axis=2)
    raise ValueError(f"Unsupported image shape {arr.shape!r}")


def load_hdr_image(path: PathLike) -> np.ndarray:
    """Load a scene background as scene-linear ``(H, W, 3)`` float32.

    ``.npy`` arrays, OpenEXR/Radiance files and floating point TIFFs are taken
    as already linear. Integer images are normalised to [0, 1] and decoded from
    sRGB. Unreadable files raise ``ValueError``.
    """
    source = Path(path)
    suffix = source.suffix.lower()
    try:
        if suffix == ".npy":
            arr = np.load(source, allow_pickle=False)
        elif suffix in _HDR_SUFFIXES:
            if iio is None:
                raise RuntimeError(f"Reading {suffix} backgrounds requires the 'imageio' package.")
            arr = np.asarray(iio.imread(os.fspath(source)))
        elif suffix in _TIFF_SUFFIXES and tifffile is not None:
            arr = np.asarray(tifffile.imread(os.fspath(source)))
        else:
            with Image.open(os.fspath(source)) as image:
                if image.mode not in {"RGB", "RGBA", "L", "LA", "F", "I;16", "I;16L", "I;16B", "I"}:
                    image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
                arr = np.array(image)
    except (OSError, ValueError) as exc:
        raise ValueError(f"Cannot read scene background {source}: {exc}") from exc

    arr = _as_rgb(np.asarray(arr))
    if np.issubdtype(arr.dtype, np.integer):
        info = np.iinfo(arr.dtype)
        encoded = (arr.astype(np.float32) - float(info.min)) / float(info.max - info.min)
        linear = to_linear(np.clip(encoded, 0.0, 1.0))
    else:
        linear = np.nan_to_num(arr.astype(np.float32), nan=0.0, posinf=0.0, neginf=0.0)
    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug("Loaded background %s: %sx%s (%s)", source, linear.shape[1], linear.shape[0], arr.dtype)
    return np.ascontiguousarray(linear, dtype=np.float32)


def save_output_image(destination: PathLike, image: "OutputImage") -> Path:
    """Write an 8-bit output image as PNG or TIFF, atomically."""
    target = Path(destination)
    suffix = target.suffix.lower()
    pixels = np.ascontiguousarray(image.pixels)
    with ProcessingContext(target) as staged:
        if suffix in _TIFF_SUFFIXES and tifffile is not None:
            tifffile.imwrite(os.fspath(staged), pixels, photometric="rgb")
        else:
            fmt = "TIFF" if suffix in _TIFF_SUFFIXES else "PNG"
            Image.fromarray(pixels).save(os.fspath(staged), format=fmt)
    LOGGER.debug("Wrote %s", target)
    return target


@dataclasses.dataclass(frozen=True)
class ImageComparison:
    """Per-channel difference summary between an output and a reference."""

    max_abs: int
    mean_abs: float
    differing_pixels: int

    @property
    def identical(self) -> bool:
        return self.max_abs == 0

    def within(self, tolerance: int) -> bool:
        return self.max_abs <= tolerance


def compare_images(image: "OutputImage", reference_path: PathLike) -> ImageComparison:
    """Compare ``image`` against an 8-bit reference image on disk."""
    with Image.open(os.fspath(reference_path)) as ref:
        reference = np.array(ref.convert("RGB"))
    if reference.shape != image.pixels.shape:
        raise ValueError(
            f"Reference {reference_path} is {reference.shape[1]}x{reference.shape[0]}; "
            f"output is {image.width}x{image.height}"
        )
    diff = np.abs(image.pixels.astype(np.int16) - reference.astype(np.int16))
    return ImageComparison(
        max_abs=int(diff.max()) if diff.size else 0,
        mean_abs=float(diff.mean()) if diff.size else 0.0,
        differing_pixels=int(np.count_nonzero(diff.any(axis=-1))),
    )


__all__ = [
    "ImageComparison",
    "ProcessingContext",
    "compare_images",
    "load_hdr_image",
    "save_output_image",
]
