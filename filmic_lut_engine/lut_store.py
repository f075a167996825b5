# path: filmic_lut_engine/lut_store.py
"""LUT containers, the immutable :class:`Cube`, and the caching store.

Two containers are understood:

- KTX 2.0 3D textures (``.ktx2``), optionally Zstandard- or zlib-supercompressed.
  Texel axes are x = red, y = green, z = blue. The encoding tag comes from an
  ``*_SRGB`` vkFormat or from the DFD transfer function.
- Resolve/Adobe text LUTs (``.cube``), red varying fastest. These carry no
  encoding and load as linear unless the caller overrides it.

Every decoded table is stored as ``(N, N, N, 3)`` float32 indexed
``[r, g, b]`` and marked read-only.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import struct
import zlib
from pathlib import Path
from typing import Dict, Literal, Optional, Tuple, Union

import numpy as np

from .encoding import Encoding
from .errors import LutDecodeError, LutNotFoundError, LutShapeError
from .io_utils import ProcessingContext

try:  # Optional codec for Zstandard-supercompressed KTX2 assets
    import zstandard  # type: ignore
except (ImportError, ModuleNotFoundError):  # pragma: no cover - optional dependency
    zstandard = None  # type: ignore[assignment]

LOGGER = logging.getLogger("filmic_lut_engine")

PathLike = Union[str, "os.PathLike[str]"]

# --- Cube ---------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, eq=False)
class Cube:
    """An N×N×N grid of RGB samples tagged with its encoding."""

    table: np.ndarray
    encoding: Encoding = Encoding.LINEAR
    source: Optional[Path] = None
    title: str = ""

    def __post_init__(self) -> None:
        table = np.array(self.table, dtype=np.float32, copy=True)
        if table.ndim != 4 or table.shape[-1] != 3:
            raise LutShapeError(f"Expected an (N, N, N, 3) table; got shape {table.shape!r}")
        n = table.shape[0]
        if table.shape[:3] != (n, n, n):
            raise LutShapeError(f"LUT grid is not cubic: {table.shape[:3]!r}")
        if n < 2:
            raise LutShapeError(f"LUT grid needs at least 2 points per axis; got {n}")
        if not np.all(np.isfinite(table)):
            raise LutDecodeError("LUT contains non-finite samples")
        table.setflags(write=False)
        object.__setattr__(self, "table", table)
        object.__setattr__(self, "encoding", Encoding(self.encoding))

    @property
    def size(self) -> int:
        return int(self.table.shape[0])

    def at(self, r: int, g: int, b: int) -> np.ndarray:
        """Stored sample at lattice point ``(r, g, b)``."""
        return self.table[r, g, b]

    def to_dict(self) -> dict:
        """Lightweight summary for logs and the ``inspect`` command."""
        return {
            "source": None if self.source is None else str(self.source),
            "title": self.title,
            "size": self.size,
            "encoding": self.encoding.value,
            "min": float(self.table.min()),
            "max": float(self.table.max()),
        }


# --- KTX2 ---------------------------------------------------------------------

KTX2_IDENTIFIER = b"\xabKTX 20\xbb\r\n\x1a\n"
_HEADER = struct.Struct("<9I")
_INDEX = struct.Struct("<4I2Q")
_LEVEL = struct.Struct("<3Q")
_LEVEL_INDEX_OFFSET = len(KTX2_IDENTIFIER) + _HEADER.size + _INDEX.size  # 80

SUPERCOMPRESSION_NONE = 0
SUPERCOMPRESSION_BASISLZ = 1
SUPERCOMPRESSION_ZSTD = 2
SUPERCOMPRESSION_ZLIB = 3

# Largest lattice accepted from a container header.
MAX_LUT_SIZE = 256

_DFD_TRANSFER_LINEAR = 1
_DFD_TRANSFER_SRGB = 2

# vkFormat -> (numpy dtype, channels, sRGB-encoded)
_VK_FORMATS: Dict[int, Tuple[str, int, bool]] = {
    23: ("u1", 3, False),  # R8G8B8_UNORM
    29: ("u1", 3, True),  # R8G8B8_SRGB
    37: ("u1", 4, False),  # R8G8B8A8_UNORM
    43: ("u1", 4, True),  # R8G8B8A8_SRGB
    90: ("<f2", 3, False),  # R16G16B16_SFLOAT
    97: ("<f2", 4, False),  # R16G16B16A16_SFLOAT
    106: ("<f4", 3, False),  # R32G32B32_SFLOAT
    109: ("<f4", 4, False),  # R32G32B32A32_SFLOAT
}

_WRITE_FORMATS = {
    # name -> (vkFormat linear, vkFormat sRGB, numpy dtype)
    "uint8": (37, 43, "u1"),
    "float16": (97, 97, "<f2"),
    "float32": (109, 109, "<f4"),
}

_SUPERCOMPRESSION_NAMES = {
    "none": SUPERCOMPRESSION_NONE,
    "zstd": SUPERCOMPRESSION_ZSTD,
    "zlib": SUPERCOMPRESSION_ZLIB,
}


def _supercompression_decode(scheme: int, payload: bytes, expected: int) -> bytes:
    if scheme == SUPERCOMPRESSION_NONE:
        return payload
    if scheme == SUPERCOMPRESSION_ZLIB:
        # Bounded inflate; anything past ``expected`` fails the length check.
        try:
            return zlib.decompressobj().decompress(payload, expected + 1)
        except zlib.error as exc:
            raise LutDecodeError(f"Corrupt zlib payload: {exc}") from exc
    if scheme == SUPERCOMPRESSION_ZSTD:
        if zstandard is None:
            raise LutDecodeError(
                "Zstandard-supercompressed KTX2 requires the 'zstandard' package."
            )
        try:
            return zstandard.ZstdDecompressor().decompress(payload, max_output_size=max(expected, 1))
        except zstandard.ZstdError as exc:
            raise LutDecodeError(f"Corrupt Zstandard payload: {exc}") from exc
    if scheme == SUPERCOMPRESSION_BASISLZ:
        raise LutDecodeError("BasisLZ supercompression is not supported for LUT textures")
    raise LutDecodeError(f"Unknown KTX2 supercompression scheme {scheme}")


def _dfd_transfer(data: bytes, offset: int, length: int) -> Optional[int]:
    # dfdTotalSize (4) + block header (8) + colorModel, colorPrimaries, transferFunction
    if length < 16 or offset + 16 > len(data):
        return None
    return data[offset + 14]


def decode_ktx2(
    data: bytes,
    *,
    source: Optional[Path] = None,
    encoding: Optional[Encoding] = None,
) -> Cube:
    """Decode a KTX2 3D texture into a :class:`Cube`."""
    if len(data) < _LEVEL_INDEX_OFFSET or not data.startswith(KTX2_IDENTIFIER):
        raise LutDecodeError(f"Not a KTX2 container or truncated header: {source or '<bytes>'}")

    (
        vk_format,
        _type_size,
        width,
        height,
        depth,
        layers,
        faces,
        levels,
        scheme,
    ) = _HEADER.unpack_from(data, len(KTX2_IDENTIFIER))
    dfd_offset, dfd_length, _kvd_offset, _kvd_length, _sgd_offset, _sgd_length = _INDEX.unpack_from(
        data, len(KTX2_IDENTIFIER) + _HEADER.size
    )

    if vk_format not in _VK_FORMATS:
        raise LutDecodeError(f"Unsupported KTX2 vkFormat {vk_format}")
    if layers > 1 or faces != 1:
        raise LutDecodeError("Array and cubemap textures cannot be used as LUTs")
    if depth == 0:
        raise LutShapeError(f"KTX2 texture is 2D ({width}x{height}); a 3D LUT is required")
    if not (width == height == depth):
        raise LutShapeError(f"LUT grid is not cubic: {width}x{height}x{depth}")
    if width > MAX_LUT_SIZE:
        raise LutDecodeError(f"KTX2 header claims a {width}^3 lattice; at most {MAX_LUT_SIZE} is supported")

    level_count = max(1, levels)
    if _LEVEL_INDEX_OFFSET + level_count * _LEVEL.size > len(data):
        raise LutDecodeError("Truncated KTX2 level index")
    byte_offset, byte_length, uncompressed = _LEVEL.unpack_from(data, _LEVEL_INDEX_OFFSET)
    if byte_offset + byte_length > len(data):
        raise LutDecodeError(
            f"Truncated KTX2 level data: need {byte_offset + byte_length} bytes, have {len(data)}"
        )

    dtype_code, channels, srgb = _VK_FORMATS[vk_format]
    dtype = np.dtype(dtype_code)
    expected = width * height * depth * channels * dtype.itemsize
    if uncompressed != expected:
        raise LutDecodeError(
            f"KTX2 level 0 declares {uncompressed} uncompressed bytes; a {width}^3 lattice needs {expected}"
        )
    raw = _supercompression_decode(scheme, data[byte_offset : byte_offset + byte_length], expected)
    if len(raw) != expected:
        raise LutDecodeError(f"KTX2 level 0 holds {len(raw)} bytes; expected {expected}")

    texels = np.frombuffer(raw, dtype=dtype).reshape(depth, height, width, channels)[..., :3]
    values = texels.astype(np.float32)
    if dtype.kind == "u":
        values /= 255.0
    # (z=b, y=g, x=r) -> [r, g, b]
    table = values.transpose(2, 1, 0, 3)

    if encoding is None:
        display = srgb or _dfd_transfer(data, dfd_offset, dfd_length) == _DFD_TRANSFER_SRGB
        encoding = Encoding.DISPLAY if display else Encoding.LINEAR

    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug(
            "Decoded KTX2 %s: vkFormat=%s size=%s scheme=%s encoding=%s",
            source, vk_format, width, scheme, Encoding(encoding).value,
        )
    return Cube(table=table, encoding=encoding, source=source)


def _dfd_block(transfer: int, dtype: np.dtype) -> bytes:
    """Basic data format descriptor for an RGBA texel."""
    bits = dtype.itemsize * 8
    block_size = 24 + 16 * 4
    header = struct.pack("<II", 0, 2 | (block_size << 16))
    header += struct.pack("<BBBB", 1, 1, transfer, 0)  # RGBSDA, BT709, transfer, straight alpha
    header += struct.pack("<4B", 0, 0, 0, 0)  # texelBlockDimension 1x1x1x1
    header += struct.pack("<8B", dtype.itemsize * 4, 0, 0, 0, 0, 0, 0, 0)
    samples = b""
    is_float = dtype.kind == "f"
    qualifiers = 0xC0 if is_float else 0x00  # FLOAT | SIGNED
    lower, upper = (0xBF800000, 0x3F800000) if is_float else (0, 255)
    for index, channel in enumerate((0, 1, 2, 15)):
        samples += struct.pack("<HBB", index * bits, bits - 1, channel | qualifiers)
        samples += b"\x00\x00\x00\x00"
        samples += struct.pack("<II", lower, upper)
    body = header + samples
    return struct.pack("<I", 4 + len(body)) + body


def encode_ktx2(
    cube: Cube,
    *,
    dtype: Literal["uint8", "float16", "float32"] = "float32",
    supercompression: Literal["none", "zstd", "zlib"] = "none",
) -> bytes:
    """Serialize ``cube`` as a single-level RGBA KTX2 3D texture."""
    try:
        vk_linear, vk_srgb, dtype_code = _WRITE_FORMATS[dtype]
        scheme = _SUPERCOMPRESSION_NAMES[supercompression]
    except KeyError as exc:
        raise ValueError(f"Unsupported KTX2 write option: {exc.args[0]!r}") from exc

    np_dtype = np.dtype(dtype_code)
    display = cube.encoding is Encoding.DISPLAY
    vk_format = vk_srgb if display else vk_linear
    n = cube.size

    texels = np.empty((n, n, n, 4), dtype=np.float32)
    texels[..., :3] = cube.table.transpose(2, 1, 0, 3)
    texels[..., 3] = 1.0
    if np_dtype.kind == "u":
        raw = np.round(np.clip(texels, 0.0, 1.0) * 255.0).astype(np_dtype).tobytes()
    else:
        raw = texels.astype(np_dtype).tobytes()

    if scheme == SUPERCOMPRESSION_ZLIB:
        payload = zlib.compress(raw, 9)
    elif scheme == SUPERCOMPRESSION_ZSTD:
        if zstandard is None:
            raise RuntimeError("Writing Zstandard KTX2 requires the 'zstandard' package.")
        payload = zstandard.ZstdCompressor(level=19).compress(raw)
    else:
        payload = raw

    transfer = _DFD_TRANSFER_SRGB if display else _DFD_TRANSFER_LINEAR
    dfd = _dfd_block(transfer, np_dtype)
    dfd_offset = _LEVEL_INDEX_OFFSET + _LEVEL.size
    data_offset = dfd_offset + len(dfd)
    padding = (-data_offset) % 16
    data_offset += padding

    out = bytearray(KTX2_IDENTIFIER)
    out += _HEADER.pack(vk_format, np_dtype.itemsize, n, n, n, 0, 1, 1, scheme)
    out += _INDEX.pack(dfd_offset, len(dfd), 0, 0, 0, 0)
    out += _LEVEL.pack(data_offset, len(payload), len(raw))
    out += dfd
    out += b"\x00" * padding
    out += payload
    return bytes(out)


# --- .cube --------------------------------------------------------------------


def parse_cube_text(
    text: str,
    *,
    source: Optional[Path] = None,
    encoding: Optional[Encoding] = None,
) -> Cube:
    """Parse a Resolve/Adobe ``.cube`` 3D LUT."""
    size: Optional[int] = None
    title = ""
    rows: list[list[float]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        head = parts[0].upper()
        try:
            if head == "TITLE":
                title = line[len(parts[0]):].strip().strip('"')
            elif head == "LUT_3D_SIZE":
                size = int(parts[1])
            elif head == "LUT_1D_SIZE":
                raise LutShapeError(f"{source or '<text>'} is a 1D LUT; a 3D LUT is required")
            elif head in {"DOMAIN_MIN", "DOMAIN_MAX"}:
                bound = [float(v) for v in parts[1:4]]
                expected = 0.0 if head == "DOMAIN_MIN" else 1.0
                if bound != [expected] * 3:
                    raise LutDecodeError(f"Unsupported {head} {bound} (line {lineno})")
            elif len(parts) >= 3:
                rows.append([float(parts[0]), float(parts[1]), float(parts[2])])
            else:
                raise LutDecodeError(f"Malformed .cube line {lineno}: {line!r}")
        except (IndexError, ValueError) as exc:
            raise LutDecodeError(f"Malformed .cube line {lineno}: {line!r}") from exc

    if size is None:
        raise LutDecodeError(f"Missing LUT_3D_SIZE in {source or '<text>'}")
    expected_rows = size ** 3
    if len(rows) != expected_rows:
        raise LutDecodeError(
            f"Truncated .cube data in {source or '<text>'}: expected {expected_rows} rows, got {len(rows)}"
        )
    # red varies fastest -> rows are [b][g][r]
    table = np.asarray(rows, dtype=np.float32).reshape(size, size, size, 3).transpose(2, 1, 0, 3)
    return Cube(table=table, encoding=encoding or Encoding.LINEAR, source=source, title=title)


def format_cube_text(cube: Cube) -> str:
    """Serialize ``cube`` as ``.cube`` text (encoding is not representable)."""
    n = cube.size
    lines = []
    if cube.title:
        lines.append(f'TITLE "{cube.title}"')
    lines.append(f"LUT_3D_SIZE {n}")
    lines.append("DOMAIN_MIN 0.0 0.0 0.0")
    lines.append("DOMAIN_MAX 1.0 1.0 1.0")
    rows = cube.table.transpose(2, 1, 0, 3).reshape(-1, 3)
    lines.extend(f"{r:.9f} {g:.9f} {b:.9f}" for r, g, b in rows.tolist())
    return "\n".join(lines) + "\n"


# --- file-level helpers -------------------------------------------------------


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise LutNotFoundError(f"LUT not found: {path}") from exc
    except OSError as exc:
        raise LutDecodeError(f"Unable to read LUT {path}: {exc}") from exc


def load_lut(path: PathLike, *, encoding: Optional[Encoding] = None) -> Cube:
    """Decode the LUT at ``path``, dispatching on its suffix."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".ktx2":
        return decode_ktx2(_read_bytes(path), source=path, encoding=encoding)
    if suffix == ".cube":
        raw = _read_bytes(path)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise LutDecodeError(f"{path} is not valid UTF-8 text") from exc
        return parse_cube_text(text, source=path, encoding=encoding)
    raise LutDecodeError(f"Unsupported LUT container {suffix!r}: {path}")


def save_lut(path: PathLike, cube: Cube, **ktx2_options) -> Path:
    """Write ``cube`` to ``path`` as ``.ktx2`` or ``.cube`` (by suffix)."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".ktx2":
        payload = encode_ktx2(cube, **ktx2_options)
    elif suffix == ".cube":
        payload = format_cube_text(cube).encode("utf-8")
    else:
        raise ValueError(f"Unsupported LUT container {suffix!r}: {path}")
    with ProcessingContext(path) as staged:
        staged.write_bytes(payload)
    return path


# --- store --------------------------------------------------------------------


class LutStore:
    """Decode-once cache of cubes keyed by resolved path and encoding override.

    Failures are never cached, so a fixed asset is picked up on the next
    request.
    """

    def __init__(self, root: Optional[PathLike] = None) -> None:
        self.root = None if root is None else Path(root)
        self._cache: Dict[Tuple[Path, Optional[Encoding]], Cube] = {}
        self._log = LOGGER.getChild("lut_store")

    def resolve(self, path: PathLike) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute() and self.root is not None:
            candidate = self.root / candidate
        return candidate.resolve()

    def _key(self, path: PathLike, encoding: Optional[Encoding]) -> Tuple[Path, Optional[Encoding]]:
        return self.resolve(path), (None if encoding is None else Encoding(encoding))

    def load(self, path: PathLike, *, encoding: Optional[Encoding] = None) -> Cube:
        key = self._key(path, encoding)
        cached = self._cache.get(key)
        if cached is not None:
            self._log.debug("Cache hit for %s", key[0])
            return cached
        self._log.info("Loading LUT %s", key[0])
        cube = load_lut(key[0], encoding=key[1])
        self._cache[key] = cube
        return cube

    async def load_async(self, path: PathLike, *, encoding: Optional[Encoding] = None) -> Cube:
        """Cooperative variant of :meth:`load`; decoding runs off the event loop."""
        key = self._key(path, encoding)
        cached = self._cache.get(key)
        if cached is not None:
            self._log.debug("Cache hit for %s", key[0])
            return cached
        self._log.info("Loading LUT %s", key[0])
        cube = await asyncio.to_thread(load_lut, key[0], encoding=key[1])
        return self._cache.setdefault(key, cube)

    def clear(self) -> None:
        self._cache.clear()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        resolved = self.resolve(path)
        return any(key[0] == resolved for key in self._cache)

    def __len__(self) -> int:
        return len(self._cache)


__all__ = [
    "Cube",
    "KTX2_IDENTIFIER",
    "LutStore",
    "MAX_LUT_SIZE",
    "decode_ktx2",
    "encode_ktx2",
    "format_cube_text",
    "load_lut",
    "parse_cube_text",
    "save_lut",
]
