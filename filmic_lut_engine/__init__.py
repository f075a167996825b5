# path: filmic_lut_engine/__init__.py
"""Filmic 3D-LUT color pipeline engine.

Modules:
- lut_store: KTX2 / .cube decoding into tagged cubes, plus a decode-once cache.
- sampler: trilinear and tetrahedral cube sampling.
- encoding: linear <-> display (sRGB) conversions.
- stages/compositor: view and look stages sequenced after the rasterizer.
- batch: ordered (view, look) batch runs with skip records.
- bake/lookup/profiles: procedural assets, asset tables and render profiles.
- cli: Typer-based reference-image CLI.

Top-level exports are lazily loaded to minimize import time while remaining
visible to type checkers and IDEs.
"""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any
import logging

# Attach a NullHandler by default; applications may configure logging as needed.
LOGGER = logging.getLogger("filmic_lut_engine")
LOGGER.addHandler(logging.NullHandler())

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("filmic_lut_engine")
except PackageNotFoundError:
    __version__ = "0.0.0"

# Public API surface (kept stable for consumers).
__all__ = [
    # batch
    "BatchEntry",
    "BatchOrchestrator",
    "BatchResult",
    "REFERENCE_ENTRIES",
    "SkipRecord",
    "run_batch",
    # compositor
    "Compositor",
    "PipelineConfig",
    # encoding
    "Encoding",
    "to_display",
    "to_linear",
    # errors
    "EncodingError",
    "LutDecodeError",
    "LutNotFoundError",
    "LutShapeError",
    "PipelineError",
    "StalePipelineError",
    # lut_store
    "Cube",
    "LutStore",
    "load_lut",
    "save_lut",
    # sampler
    "sample",
    "sample_array",
    # stages
    "LookKind",
    "LookSpec",
    "ViewKind",
    "ViewSpec",
    # lookup
    "lookup_tables",
    # cli
    "app",
    "main",
    # meta
    "__version__",
]

# Map export name → (module path, attribute name)
_EXPORTS = {
    # batch
    "BatchEntry": ("filmic_lut_engine.batch", "BatchEntry"),
    "BatchOrchestrator": ("filmic_lut_engine.batch", "BatchOrchestrator"),
    "BatchResult": ("filmic_lut_engine.batch", "BatchResult"),
    "REFERENCE_ENTRIES": ("filmic_lut_engine.batch", "REFERENCE_ENTRIES"),
    "SkipRecord": ("filmic_lut_engine.batch", "SkipRecord"),
    "run_batch": ("filmic_lut_engine.batch", "run_batch"),
    # compositor
    "Compositor": ("filmic_lut_engine.compositor", "Compositor"),
    "PipelineConfig": ("filmic_lut_engine.compositor", "PipelineConfig"),
    # encoding
    "Encoding": ("filmic_lut_engine.encoding", "Encoding"),
    "to_display": ("filmic_lut_engine.encoding", "to_display"),
    "to_linear": ("filmic_lut_engine.encoding", "to_linear"),
    # errors
    "EncodingError": ("filmic_lut_engine.errors", "EncodingError"),
    "LutDecodeError": ("filmic_lut_engine.errors", "LutDecodeError"),
    "LutNotFoundError": ("filmic_lut_engine.errors", "LutNotFoundError"),
    "LutShapeError": ("filmic_lut_engine.errors", "LutShapeError"),
    "PipelineError": ("filmic_lut_engine.errors", "PipelineError"),
    "StalePipelineError": ("filmic_lut_engine.errors", "StalePipelineError"),
    # lut_store
    "Cube": ("filmic_lut_engine.lut_store", "Cube"),
    "LutStore": ("filmic_lut_engine.lut_store", "LutStore"),
    "load_lut": ("filmic_lut_engine.lut_store", "load_lut"),
    "save_lut": ("filmic_lut_engine.lut_store", "save_lut"),
    # sampler
    "sample": ("filmic_lut_engine.sampler", "sample"),
    "sample_array": ("filmic_lut_engine.sampler", "sample_array"),
    # stages
    "LookKind": ("filmic_lut_engine.stages", "LookKind"),
    "LookSpec": ("filmic_lut_engine.stages", "LookSpec"),
    "ViewKind": ("filmic_lut_engine.stages", "ViewKind"),
    "ViewSpec": ("filmic_lut_engine.stages", "ViewSpec"),
    # lookup
    "lookup_tables": ("filmic_lut_engine.lookup", "lookup_tables"),
    # cli (real symbols)
    "app": ("filmic_lut_engine.cli", "app"),
    "main": ("filmic_lut_engine.cli", "main"),
    # meta
    "__version__": (__name__, "__version__"),
}


def __getattr__(name: str) -> Any:
    """Lazy attribute loader for top-level exports."""
    try:
        module_path, attr = _EXPORTS[name]
    except KeyError as exc:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from exc

    module = import_module(module_path)
    value = getattr(module, attr)
    globals()[name] = value  # cache
    return value


def __dir__() -> list[str]:
    """Offer a helpful attribute list in REPL/IDEs."""
    return sorted(set(globals().keys()) | set(__all__))


# Static imports for type checkers only; no runtime side effects.
if TYPE_CHECKING:  # pragma: no cover
    from .batch import (  # noqa: F401
        REFERENCE_ENTRIES,
        BatchEntry,
        BatchOrchestrator,
        BatchResult,
        SkipRecord,
        run_batch,
    )
    from .cli import app, main  # noqa: F401
    from .compositor import Compositor, PipelineConfig  # noqa: F401
    from .encoding import Encoding, to_display, to_linear  # noqa: F401
    from .errors import (  # noqa: F401
        EncodingError,
        LutDecodeError,
        LutNotFoundError,
        LutShapeError,
        PipelineError,
        StalePipelineError,
    )
    from .lookup import lookup_tables  # noqa: F401
    from .lut_store import Cube, LutStore, load_lut, save_lut  # noqa: F401
    from .sampler import sample, sample_array  # noqa: F401
    from .stages import LookKind, LookSpec, ViewKind, ViewSpec  # noqa: F401
