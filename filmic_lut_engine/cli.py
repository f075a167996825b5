# path: filmic_lut_engine/cli.py
"""Typer-based CLI for rendering Filmic reference images.

Install an entrypoint like:
    filmic-ref = filmic_lut_engine.cli:main
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import typer

from .bake import bake_reference_luts
from .batch import REFERENCE_ENTRIES, BatchEntry, BatchResult, build_orchestrator, load_batch_config
from .errors import LutDecodeError, LutShapeError, PipelineError
from .io_utils import compare_images, load_hdr_image
from .lookup import resolve_lut_root
from .lut_store import load_lut
from .profiles import DEFAULT_PROFILE_NAME, RENDER_PROFILES, RenderProfile, get_profile
from .scene import Scene

app = typer.Typer(name="filmic-ref", no_args_is_help=True, add_completion=False)

_LUT_FORMATS = ("ktx2", "cube")
_KTX2_DTYPES = ("float32", "float16", "uint8")
_SUPERCOMPRESSION = ("none", "zlib", "zstd")

# --------------------------- internal helpers ---------------------------------

def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level!r}")
    logging.basicConfig(level=numeric, format="%(levelname)s %(name)s: %(message)s")

def _choice(value: str, choices: Sequence[str], option: str) -> str:
    normalised = value.lower()
    if normalised not in choices:
        raise typer.BadParameter(f"{option} must be one of: {', '.join(choices)}")
    return normalised

def _resolve_profile(name: str, width: Optional[int], height: Optional[int]) -> RenderProfile:
    try:
        profile = get_profile(name)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0])) from exc
    if width is not None or height is not None:
        profile = profile.with_size(width or profile.width, height or profile.height)
    return profile

def _load_entries(config: Optional[Path]) -> List[BatchEntry]:
    if config is None:
        return list(REFERENCE_ENTRIES)
    try:
        return load_batch_config(config)
    except (ValueError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc)) from exc

def _load_scene(path: Path) -> Scene:
    try:
        return Scene(background=load_hdr_image(path))
    except (ValueError, RuntimeError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--scene") from exc

def _report_references(result: BatchResult, reference_dir: Path) -> None:
    for image in result.images:
        reference = reference_dir / f"{image.entry_id}.png"
        if not reference.is_file():
            typer.secho(f"No reference for {image.entry_id}: {reference}", fg=typer.colors.YELLOW)
            continue
        try:
            stats = compare_images(image, reference)
        except ValueError as exc:
            typer.secho(f"Reference mismatch for {image.entry_id}: {exc}", fg=typer.colors.RED)
            continue
        colour = typer.colors.GREEN if stats.identical else None
        typer.secho(
            f"{image.entry_id}: max={stats.max_abs} mean={stats.mean_abs:.3f} "
            f"differing={stats.differing_pixels}",
            fg=colour,
        )

# --------------------------------- CLI ---------------------------------------

@app.command("run")
def run(
    out_dir: Path = typer.Option(..., "--out-dir", "-o", help="Directory receiving <id>.png per entry."),
    config: Optional[Path] = typer.Option(None, "--config", exists=True, readable=True,
                                          help="JSON/YAML list of {id, name, view, look} entries."),
    lut_dir: Optional[Path] = typer.Option(None, "--lut-dir", help="LUT root (default: $FILMIC_LUT_DIR or ./luts)."),
    profile: str = typer.Option(DEFAULT_PROFILE_NAME, "--profile",
                                help=f"Render profile: {', '.join(sorted(RENDER_PROFILES))}"),
    width: Optional[int] = typer.Option(None, "--width", min=1, help="Override profile width."),
    height: Optional[int] = typer.Option(None, "--height", min=1, help="Override profile height."),
    scene: Optional[Path] = typer.Option(None, "--scene", exists=True, readable=True,
                                         help="HDR background (.exr/.hdr/.npy/.tif); default is the test chart."),
    reference_dir: Optional[Path] = typer.Option(None, "--reference-dir", exists=True, file_okay=False,
                                                 help="Compare outputs against <id>.png references."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar."),
) -> None:
    """Render every batch entry and write one PNG per entry."""
    _configure_logging(log_level)
    render_profile = _resolve_profile(profile, width, height)
    entries = _load_entries(config)
    background = _load_scene(scene) if scene is not None else None

    orchestrator = build_orchestrator(
        render_profile,
        lut_root=resolve_lut_root(lut_dir),
        scene=background,
        show_progress=not no_progress,
    )
    try:
        result = asyncio.run(orchestrator.run(entries))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except PipelineError as exc:
        typer.secho(f"Aborted: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    for path in result.save_all(out_dir):
        typer.echo(str(path))
    for record in result.skipped:
        typer.secho(f"Skipped {record.id}: {record.reason}", fg=typer.colors.YELLOW)
    if reference_dir is not None:
        _report_references(result, reference_dir)

    if result.skipped:
        raise typer.Exit(code=1)

@app.command("bake")
def bake(
    directory: Path = typer.Argument(..., file_okay=False, help="Output directory for the LUT set."),
    size: int = typer.Option(33, "--size", min=2, help="Lattice points per axis."),
    fmt: str = typer.Option("ktx2", "--format", help="ktx2 | cube"),
    dtype: str = typer.Option("float32", "--dtype", help="KTX2 sample type: float32 | float16 | uint8"),
    supercompression: str = typer.Option("none", "--supercompression", help="KTX2: none | zlib | zstd"),
) -> None:
    """Write the procedural base LUTs and contrast looks."""
    fmt = _choice(fmt, _LUT_FORMATS, "--format")
    options = {}
    if fmt == "ktx2":
        options = {
            "dtype": _choice(dtype, _KTX2_DTYPES, "--dtype"),
            "supercompression": _choice(supercompression, _SUPERCOMPRESSION, "--supercompression"),
        }
    try:
        written = bake_reference_luts(directory, size=size, fmt=fmt, **options)  # type: ignore[arg-type]
    except RuntimeError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc
    for path in written:
        typer.echo(str(path))

@app.command("inspect")
def inspect(
    lut: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help=".ktx2 or .cube file."),
) -> None:
    """Print size, encoding and value range of a LUT file."""
    try:
        cube = load_lut(lut)
    except (LutDecodeError, LutShapeError) as exc:
        typer.secho(f"{lut}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc
    for key, value in cube.to_dict().items():
        typer.echo(f"{key}: {value}")

def main() -> None:
    app()

if __name__ == "__main__":
    main()
