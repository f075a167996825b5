# path: filmic_lut_engine/lookup.py
"""Static (view, look) -> LUT asset tables and LUT root discovery.

Resolves a view/look pair into relative LUT paths, and a LUT root reference
(explicit path, environment variable or conventional folder) into a directory.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from .stages import LookKind, ViewKind

LUT_DIR_ENV = "FILMIC_LUT_DIR"
LUT_DIR_NAME = "luts"

BASE_LUTS: Dict[ViewKind, str] = {
    ViewKind.FILMIC: "desat65cube.ktx2",
    ViewKind.FALSE_COLOR: "Filmic_False_Colour.ktx2",
}

LOOK_OPTIONS: Dict[LookKind, str] = {
    LookKind.VERY_HIGH_CONTRAST: "Filmic_to_1.20_1-00.ktx2",
    LookKind.HIGH_CONTRAST: "Filmic_to_0.99_1-0075.ktx2",
    LookKind.MEDIUM_HIGH_CONTRAST: "Filmic_to_0-85_1-011.ktx2",
    LookKind.MEDIUM_CONTRAST: "Filmic_to_0-70_1-03.ktx2",
    LookKind.MEDIUM_LOW_CONTRAST: "Filmic_to_0-60_1-04.ktx2",
    LookKind.LOW_CONTRAST: "Filmic_to_0-48_1-09.ktx2",
    LookKind.VERY_LOW_CONTRAST: "Filmic_to_0-35_1-30.ktx2",
}

# (slope, power) encoded in each look's file name.
LOOK_PARAMETERS: Dict[LookKind, Tuple[float, float]] = {
    LookKind.VERY_HIGH_CONTRAST: (1.20, 1.00),
    LookKind.HIGH_CONTRAST: (0.99, 1.0075),
    LookKind.MEDIUM_HIGH_CONTRAST: (0.85, 1.011),
    LookKind.MEDIUM_CONTRAST: (0.70, 1.03),
    LookKind.MEDIUM_LOW_CONTRAST: (0.60, 1.04),
    LookKind.LOW_CONTRAST: (0.48, 1.09),
    LookKind.VERY_LOW_CONTRAST: (0.35, 1.30),
}


def lookup_tables(view: ViewKind, look: LookKind) -> Tuple[Optional[Path], Optional[Path]]:
    """Return the relative (view, look) LUT paths; ``None`` for identity stages."""
    view = ViewKind(view)
    look = LookKind(look)
    view_path = None if view is ViewKind.NONE else Path(BASE_LUTS[view])
    look_path = None if look is LookKind.NONE else Path(LOOK_OPTIONS[look])
    return view_path, look_path


def _has_luts(folder: Path) -> bool:
    if not folder.is_dir():
        return False
    return any(p.suffix.lower() in {".ktx2", ".cube"} for p in folder.iterdir() if p.is_file())


def _candidate_dirs(base_search: Optional[Path]) -> Iterable[Path]:
    """Yield likely LUT folders, most specific first."""
    # 1) Environment variable
    env_dir = os.getenv(LUT_DIR_ENV)
    if env_dir:
        yield Path(env_dir).expanduser()

    # 2) CWD luts/
    cwd = Path.cwd()
    yield cwd / LUT_DIR_NAME

    # 3) Base search (repo/package root)
    if base_search:
        yield base_search / LUT_DIR_NAME

    # 4) Walk a few parents looking for 'luts'
    probe = cwd
    for _ in range(4):
        probe = probe.parent
        yield probe / LUT_DIR_NAME


def resolve_lut_root(
    explicit: Optional[str | os.PathLike[str]] = None,
    *,
    base_search: Optional[Path] = None,
) -> Path:
    """Resolve the directory LUT assets are loaded from.

    An explicit path wins even when it does not exist yet (missing assets
    become skip records later). Otherwise the first candidate folder holding
    LUT files is used, falling back to ``./luts``.
    """
    if explicit is not None:
        return Path(explicit).expanduser().resolve()
    for folder in _candidate_dirs(base_search):
        if _has_luts(folder):
            return folder.resolve()
    return (Path.cwd() / LUT_DIR_NAME).resolve()


__all__ = [
    "BASE_LUTS",
    "LOOK_OPTIONS",
    "LOOK_PARAMETERS",
    "LUT_DIR_ENV",
    "lookup_tables",
    "resolve_lut_root",
]
