# path: filmic_lut_engine/batch.py
"""Batch orchestration: render a declared list of (view, look) entries in order."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from .compositor import Compositor, PipelineConfig
from .errors import LutDecodeError
from .frames import OutputImage
from .lookup import lookup_tables, resolve_lut_root
from .lut_store import LutStore
from .profiles import DEFAULT_PROFILE_NAME, RenderProfile, get_profile
from .scene import Scene, reference_test_scene
from .stages import LookKind, LookSpec, ViewKind, ViewSpec

try:  # optional progress bar
    from tqdm import tqdm as _tqdm  # type: ignore
except Exception:  # pragma: no cover
    _tqdm = None

try:  # optional YAML support
    import yaml  # type: ignore
except Exception:  # pragma: no cover
    yaml = None  # type: ignore

LOGGER = logging.getLogger("filmic_lut_engine")


def _tqdm_progress(
    iterable: Iterable[object], *, total: Optional[int], description: Optional[str]
) -> Iterable[object]:
    """Wrap iterable with tqdm if available."""
    if _tqdm is None:  # pragma: no cover
        return iterable
    return _tqdm(iterable, total=total, desc=description, unit="image")


_PROGRESS_WRAPPER = _tqdm_progress if _tqdm is not None else None


def _wrap_with_progress(
    iterable: Iterable["BatchEntry"],
    *,
    total: Optional[int],
    description: str,
    enabled: bool,
) -> Iterable["BatchEntry"]:
    """Return iterable wrapped with a progress helper when available."""
    if not enabled:
        return iterable
    helper = _PROGRESS_WRAPPER
    if helper is None:
        LOGGER.debug("Progress helper not available; install tqdm for progress reporting.")
        return iterable
    try:
        return helper(iterable, total=total, description=description)
    except Exception:  # pragma: no cover
        LOGGER.exception("Progress helper failed; continuing without progress display.")
        return iterable


# --- entries ------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class BatchEntry:
    """One comparison image: a view and a look rendered under ``id``."""

    id: str
    display_name: str = ""
    view: ViewKind = ViewKind.NONE
    look: LookKind = LookKind.NONE

    def __post_init__(self) -> None:
        if not self.id or any(ch in self.id for ch in "/\\"):
            raise ValueError(f"Entry id must be a non-empty file-safe name; got {self.id!r}")
        object.__setattr__(self, "view", ViewKind(self.view))
        object.__setattr__(self, "look", LookKind(self.look))
        if not self.display_name:
            object.__setattr__(self, "display_name", self.id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BatchEntry":
        """Build from a config mapping; accepts ``name`` or ``display_name``."""
        try:
            entry_id = str(data["id"])
        except KeyError as exc:
            raise ValueError(f"Batch entry is missing 'id': {dict(data)!r}") from exc
        name = data.get("display_name", data.get("name", ""))
        try:
            view = ViewKind(str(data.get("view", "none")).lower())
            look = LookKind(str(data.get("look", "none")).lower())
        except ValueError as exc:
            raise ValueError(f"Batch entry {entry_id!r}: {exc}") from exc
        return cls(entry_id, str(name or ""), view, look)


REFERENCE_ENTRIES = (
    BatchEntry("very_high", "Very high contrast", ViewKind.FILMIC, LookKind.VERY_HIGH_CONTRAST),
    BatchEntry("high", "High contrast", ViewKind.FILMIC, LookKind.HIGH_CONTRAST),
    BatchEntry("medium_high", "Medium high contrast", ViewKind.FILMIC, LookKind.MEDIUM_HIGH_CONTRAST),
    BatchEntry("medium", "Medium contrast", ViewKind.FILMIC, LookKind.MEDIUM_CONTRAST),
    BatchEntry("medium_low", "Medium low contrast", ViewKind.FILMIC, LookKind.MEDIUM_LOW_CONTRAST),
    BatchEntry("low", "Low contrast", ViewKind.FILMIC, LookKind.LOW_CONTRAST),
    BatchEntry("very_low", "Very low contrast", ViewKind.FILMIC, LookKind.VERY_LOW_CONTRAST),
    BatchEntry("false_color", "False color", ViewKind.FALSE_COLOR, LookKind.NONE),
)


def load_batch_config(path: Union[str, Path]) -> List[BatchEntry]:
    """Read entries from a JSON or YAML file.

    Supports a plain list of entries or ``{"entries": [...]}``.
    YAML requires PyYAML if .yml/.yaml is used.
    """
    config_path = Path(path)
    text = config_path.read_text(encoding="utf-8")
    if config_path.suffix.lower() in {".yml", ".yaml"}:
        if yaml is None:
            raise RuntimeError("PyYAML required for YAML batch files.")
        try:
            data = yaml.safe_load(text)  # type: ignore
        except yaml.YAMLError as exc:  # type: ignore[union-attr]
            raise ValueError(f"Malformed YAML in {config_path}: {exc}") from exc
    else:
        data = json.loads(text)

    if isinstance(data, Mapping):
        data = data.get("entries")
    if not isinstance(data, list):
        raise ValueError(f"Unrecognized batch config schema in {config_path}")
    entries = []
    for item in data:
        if not isinstance(item, Mapping):
            raise ValueError(f"Batch entries must be mappings; got {item!r}")
        entries.append(BatchEntry.from_dict(item))
    return entries


def _check_unique(entries: Sequence[BatchEntry]) -> None:
    dupes = sorted(entry_id for entry_id, count in Counter(e.id for e in entries).items() if count > 1)
    if dupes:
        raise ValueError(f"Duplicate batch entry ids: {', '.join(dupes)}")


# --- results ------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class SkipRecord:
    id: str
    reason: str


@dataclasses.dataclass
class BatchResult:
    """Images produced in declaration order plus every skipped entry."""

    images: List[OutputImage] = dataclasses.field(default_factory=list)
    skipped: List[SkipRecord] = dataclasses.field(default_factory=list)
    cancelled: bool = False

    @property
    def ids(self) -> List[str]:
        return [image.entry_id for image in self.images]

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.cancelled

    def save_all(self, out_dir: Union[str, Path], suffix: str = ".png") -> List[Path]:
        """Write ``<out_dir>/<id><suffix>`` for every produced image."""
        root = Path(out_dir)
        return [image.save(root / f"{image.entry_id}{suffix}") for image in self.images]


# --- orchestrator -------------------------------------------------------------


class BatchOrchestrator:
    """Drives one shared :class:`Compositor` through a list of entries.

    Entries run strictly one after another; asset errors for an entry become
    skip records while structural errors abort the run.
    """

    def __init__(self, compositor: Compositor, store: LutStore, *, show_progress: bool = False) -> None:
        self.compositor = compositor
        self.store = store
        self.show_progress = show_progress
        self._lock = asyncio.Lock()
        self._log = LOGGER.getChild("batch")

    async def _configure(self, entry: BatchEntry) -> PipelineConfig:
        view_path, look_path = lookup_tables(entry.view, entry.look)
        view = ViewSpec.none()
        if view_path is not None:
            view = ViewSpec(entry.view, await self.store.load_async(view_path))
        look = LookSpec.none()
        if look_path is not None:
            look = LookSpec.graded(entry.look, await self.store.load_async(look_path))
        config = PipelineConfig(self.compositor.width, self.compositor.height, view, look)
        self.compositor.bind(config)
        self.compositor.recompile()
        return config

    async def run(
        self,
        entries: Iterable[BatchEntry] = REFERENCE_ENTRIES,
        cancel: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        entries = list(entries)
        _check_unique(entries)
        async with self._lock:
            result = BatchResult()
            progress = _wrap_with_progress(
                entries, total=len(entries), description="Rendering", enabled=self.show_progress
            )
            for entry in progress:
                if cancel is not None and cancel.is_set():
                    self._log.info("Batch cancelled before %s", entry.id)
                    result.cancelled = True
                    break
                try:
                    config = await self._configure(entry)
                except LutDecodeError as exc:
                    self._log.warning("Skipping %s: %s", entry.id, exc)
                    result.skipped.append(SkipRecord(entry.id, str(exc)))
                    continue
                frame = await self.compositor.render_async(config)
                result.images.append(self.compositor.encode(frame, entry.id))
                if self._log.isEnabledFor(logging.DEBUG):
                    self._log.debug("Rendered %s (%s / %s)", entry.id, entry.view.value, entry.look.value)
            return result


def build_orchestrator(
    profile: Optional[RenderProfile] = None,
    *,
    lut_root: Optional[Union[str, Path]] = None,
    scene: Optional[Scene] = None,
    show_progress: bool = False,
) -> BatchOrchestrator:
    """Wire a compositor and LUT store for ``profile`` (default: reference)."""
    profile = profile if profile is not None else get_profile(DEFAULT_PROFILE_NAME)
    if scene is None:
        scene = reference_test_scene(profile.width, profile.height)
    compositor = Compositor(
        profile.width, profile.height, scene=scene, interpolation=profile.interpolation
    )
    store = LutStore(resolve_lut_root(lut_root))
    LOGGER.debug("Batch profile %s, LUT root %s", profile.to_dict(), store.root)
    return BatchOrchestrator(compositor, store, show_progress=show_progress)


def run_batch(
    entries: Iterable[BatchEntry] = REFERENCE_ENTRIES,
    *,
    profile: Optional[RenderProfile] = None,
    lut_root: Optional[Union[str, Path]] = None,
    scene: Optional[Scene] = None,
    show_progress: bool = False,
    cancel: Optional[asyncio.Event] = None,
) -> BatchResult:
    """Synchronous entry point around :meth:`BatchOrchestrator.run`."""
    orchestrator = build_orchestrator(profile, lut_root=lut_root, scene=scene, show_progress=show_progress)
    return asyncio.run(orchestrator.run(entries, cancel))


__all__ = [
    "BatchEntry",
    "BatchOrchestrator",
    "BatchResult",
    "REFERENCE_ENTRIES",
    "SkipRecord",
    "build_orchestrator",
    "load_batch_config",
    "run_batch",
]
