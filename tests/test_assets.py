from __future__ import annotations

import numpy as np
import pytest

from filmic_lut_engine.bake import (
    FALSE_COLOR_BANDS,
    bake_reference_luts,
    contrast_look_cube,
    false_color_cube,
    filmic_base_cube,
    identity_cube,
)
from filmic_lut_engine.encoding import Encoding, to_display
from filmic_lut_engine.lookup import (
    BASE_LUTS,
    LOOK_OPTIONS,
    LOOK_PARAMETERS,
    LUT_DIR_ENV,
    lookup_tables,
    resolve_lut_root,
)
from filmic_lut_engine.lut_store import load_lut
from filmic_lut_engine.profiles import DEFAULT_PROFILE_NAME, RENDER_PROFILES, RenderProfile, get_profile
from filmic_lut_engine.sampler import sample
from filmic_lut_engine.stages import LookKind, ViewKind, filmic_log_encode


# --- lookup -------------------------------------------------------------------


def test_lookup_tables_is_a_static_mapping():
    view, look = lookup_tables(ViewKind.FILMIC, LookKind.MEDIUM_CONTRAST)
    assert str(view) == "desat65cube.ktx2"
    assert str(look) == "Filmic_to_0-70_1-03.ktx2"
    assert lookup_tables(ViewKind.NONE, LookKind.NONE) == (None, None)
    assert lookup_tables("false_color", "none")[0].name == "Filmic_False_Colour.ktx2"


def test_every_look_has_asset_and_parameters():
    graded = [kind for kind in LookKind if kind is not LookKind.NONE]
    assert set(LOOK_OPTIONS) == set(graded) == set(LOOK_PARAMETERS)
    assert set(BASE_LUTS) == {ViewKind.FILMIC, ViewKind.FALSE_COLOR}


def test_resolve_lut_root_prefers_explicit_then_env(tmp_path, monkeypatch):
    env_dir = tmp_path / "env_luts"
    env_dir.mkdir()
    (env_dir / "x.ktx2").write_bytes(b"")
    monkeypatch.setenv(LUT_DIR_ENV, str(env_dir))
    monkeypatch.chdir(tmp_path)

    explicit = tmp_path / "mine"
    assert resolve_lut_root(explicit) == explicit.resolve()
    assert resolve_lut_root() == env_dir.resolve()


def test_resolve_lut_root_falls_back_to_cwd_luts(tmp_path, monkeypatch):
    monkeypatch.delenv(LUT_DIR_ENV, raising=False)
    work = tmp_path / "a" / "b"
    work.mkdir(parents=True)
    monkeypatch.chdir(work)
    assert resolve_lut_root() == (work / "luts").resolve()

    parent_luts = tmp_path / "a" / "luts"
    parent_luts.mkdir()
    (parent_luts / "look.cube").write_text("LUT_3D_SIZE 2\n")
    assert resolve_lut_root() == parent_luts.resolve()


# --- profiles -------------------------------------------------------------------


def test_profiles_registry():
    assert get_profile(DEFAULT_PROFILE_NAME) is RENDER_PROFILES["reference"]
    assert (get_profile("reference").width, get_profile("reference").height) == (960, 540)
    assert get_profile("tetrahedral").interpolation == "tetrahedral"
    with pytest.raises(KeyError, match="Available"):
        get_profile("cinema")


def test_profile_validation_and_resize():
    with pytest.raises(ValueError):
        RenderProfile("bad", width=0)
    with pytest.raises(ValueError):
        RenderProfile("bad", interpolation="cubic")  # type: ignore[arg-type]
    resized = get_profile("preview").with_size(64, 36)
    assert resized.to_dict() == {
        "name": "preview", "width": 64, "height": 36, "interpolation": "trilinear", "lut_size": 17,
    }


# --- bake -----------------------------------------------------------------------


def test_bake_reference_luts_writes_lookup_names(tmp_path):
    written = bake_reference_luts(tmp_path, size=5)
    assert sorted(p.name for p in written) == sorted(list(BASE_LUTS.values()) + list(LOOK_OPTIONS.values()))
    assert load_lut(tmp_path / BASE_LUTS[ViewKind.FILMIC]).encoding is Encoding.LINEAR
    assert load_lut(tmp_path / BASE_LUTS[ViewKind.FALSE_COLOR]).encoding is Encoding.DISPLAY
    assert load_lut(tmp_path / LOOK_OPTIONS[LookKind.LOW_CONTRAST]).encoding is Encoding.DISPLAY


def test_bake_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        bake_reference_luts(tmp_path, fmt="png")  # type: ignore[arg-type]


def test_identity_cube_samples_its_coordinates():
    cube = identity_cube(4)
    assert cube.at(3, 0, 1).tolist() == pytest.approx([1.0, 0.0, 1.0 / 3.0])


def test_filmic_base_is_monotone_and_bounded():
    cube = filmic_base_cube(17)
    grey = np.array([cube.at(i, i, i)[0] for i in range(cube.size)])
    assert grey[0] == pytest.approx(0.0, abs=1e-6)
    assert grey[-1] == pytest.approx(1.0, abs=1e-6)
    assert np.all(np.diff(grey) > 0)
    # Middle grey lands near the middle of the display range.
    mid = sample(cube, np.full(3, float(filmic_log_encode(np.array(0.18)))))
    assert 0.35 < float(to_display(mid)[0]) < 0.65


def test_filmic_base_desaturates_highlights():
    cube = filmic_base_cube(17)
    bright_red = cube.at(16, 12, 12)
    dim_red = cube.at(9, 5, 5)
    assert (bright_red.max() - bright_red.min()) < (dim_red.max() - dim_red.min())


def test_false_color_bands_middle_grey_as_grey():
    cube = false_color_cube(33)
    # Lattice point 16 sits just above middle grey in log space.
    assert cube.at(16, 16, 16).tolist() == [0.5, 0.5, 0.5]
    assert cube.at(0, 0, 0).tolist() == list(FALSE_COLOR_BANDS[0][1])
    assert cube.at(32, 32, 32).tolist() == list(FALSE_COLOR_BANDS[-1][1])


@pytest.mark.parametrize("look", list(LOOK_PARAMETERS))
def test_contrast_looks_are_monotone_and_pivot_near_half(look):
    slope, power = LOOK_PARAMETERS[look]
    cube = contrast_look_cube(slope, power, 17)
    ramp = np.array([cube.at(i, i, i)[0] for i in range(17)])
    assert np.all(np.diff(ramp) >= 0)
    assert 0.3 < ramp[8] < 0.55


def test_harder_looks_have_steeper_midtones():
    slopes = []
    for look in (LookKind.VERY_HIGH_CONTRAST, LookKind.MEDIUM_CONTRAST, LookKind.VERY_LOW_CONTRAST):
        cube = contrast_look_cube(*LOOK_PARAMETERS[look], 17)
        slopes.append(cube.at(9, 9, 9)[0] - cube.at(7, 7, 7)[0])
    assert slopes[0] > slopes[1] > slopes[2]
