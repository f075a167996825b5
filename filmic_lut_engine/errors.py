# path: filmic_lut_engine/errors.py
"""Error taxonomy for the LUT color pipeline.

Asset errors (``LutDecodeError`` and its subclasses) are per-entry and
recoverable at the batch boundary. Everything else signals a structural
configuration or programming error and aborts a run.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for every error raised by the color pipeline."""


class LutDecodeError(PipelineError):
    """Raised when a LUT container is truncated, corrupt, or unreadable."""


class LutNotFoundError(LutDecodeError):
    """Raised when a LUT asset does not exist on disk."""


class LutShapeError(PipelineError):
    """Raised when a LUT grid is not cubic or LUT sizes disagree."""


class StalePipelineError(PipelineError):
    """Raised when rendering with bindings that were never recompiled."""


class EncodingError(PipelineError):
    """Raised when samples of different encodings meet without conversion."""


__all__ = [
    "EncodingError",
    "LutDecodeError",
    "LutNotFoundError",
    "LutShapeError",
    "PipelineError",
    "StalePipelineError",
]
