from __future__ import annotations

import numpy as np
import pytest

from filmic_lut_engine.bake import contrast_look_cube, identity_cube
from filmic_lut_engine.encoding import Encoding, to_display
from filmic_lut_engine.errors import EncodingError, StalePipelineError
from filmic_lut_engine.frames import Frame
from filmic_lut_engine.stages import (
    LookKind,
    LookSpec,
    LookStage,
    ViewKind,
    ViewSpec,
    ViewStage,
    filmic_log_decode,
    filmic_log_encode,
)


def _hdr_frame() -> Frame:
    stops = np.linspace(-8.0, 8.0, 12)
    radiance = 0.18 * np.power(2.0, stops)
    return Frame(np.repeat(radiance[None, :, None], 3, axis=2))


def test_filmic_log_shaper_maps_middle_grey_near_half():
    assert float(filmic_log_encode(np.array(0.18))) == pytest.approx(12.473931188 / 25.0)
    values = np.array([1e-3, 0.18, 4.0, 100.0])
    assert np.allclose(filmic_log_decode(filmic_log_encode(values)), values)


def test_filmic_log_shaper_clamps_extremes():
    encoded = filmic_log_encode(np.array([0.0, -1.0, 1e12]))
    assert encoded.tolist() == [0.0, 0.0, 1.0]


def test_spec_requires_lut_for_non_identity_variants():
    cube = identity_cube(3)
    with pytest.raises(ValueError):
        ViewSpec(ViewKind.FILMIC)
    with pytest.raises(ValueError):
        ViewSpec(ViewKind.NONE, cube)
    with pytest.raises(ValueError):
        LookSpec(LookKind.HIGH_CONTRAST)
    assert LookSpec.graded("high_contrast", cube).kind is LookKind.HIGH_CONTRAST


def test_none_stages_return_input_unchanged():
    frame = _hdr_frame()
    view, look = ViewStage(), LookStage()
    assert view.apply(frame) is frame
    assert look.apply(frame) is frame


def test_bind_without_recompile_is_stale():
    stage = LookStage()
    stage.bind(LookSpec.graded(LookKind.MEDIUM_CONTRAST, identity_cube(3, Encoding.DISPLAY)))
    assert stage.stale
    with pytest.raises(StalePipelineError, match="recompile"):
        stage.apply(_hdr_frame())
    stage.recompile()
    assert not stage.stale
    stage.apply(_hdr_frame())


def test_rebinding_compiled_spec_is_not_stale():
    stage = ViewStage()
    spec = ViewSpec.filmic(identity_cube(3))
    stage.bind(spec)
    stage.recompile()
    stage.bind(spec)
    assert not stage.stale


def test_bind_rejects_wrong_spec_type():
    with pytest.raises(TypeError):
        ViewStage().bind(LookSpec.none())  # type: ignore[arg-type]


def test_stages_require_linear_frames():
    display = Frame(np.zeros((2, 2, 3)), Encoding.DISPLAY)
    with pytest.raises(EncodingError):
        ViewStage().apply(display)


def test_view_with_identity_lut_outputs_log_shaped_values():
    frame = _hdr_frame()
    stage = ViewStage()
    stage.bind(ViewSpec.filmic(identity_cube(5)))
    stage.recompile()
    out = stage.apply(frame)
    assert out.encoding is Encoding.LINEAR
    assert np.allclose(out.pixels, filmic_log_encode(frame.pixels), atol=1e-6)


def test_display_tagged_view_lut_is_decoded_to_linear():
    frame = _hdr_frame()
    stage = ViewStage()
    stage.bind(ViewSpec.false_color(identity_cube(5, Encoding.DISPLAY)))
    stage.recompile()
    out = stage.apply(frame)
    # Sampled values are display-encoded; the stage hands back linear light.
    assert np.allclose(to_display(out.pixels), filmic_log_encode(frame.pixels), atol=1e-5)


def test_identity_display_look_preserves_in_gamut_frame():
    pixels = np.linspace(0.0, 1.0, 30, dtype=np.float32).reshape(1, 10, 3)
    stage = LookStage()
    stage.bind(LookSpec.graded(LookKind.LOW_CONTRAST, identity_cube(9, Encoding.DISPLAY)))
    stage.recompile()
    assert np.allclose(stage.apply(Frame(pixels)).pixels, pixels, atol=1e-5)


def test_contrast_look_steepens_around_pivot():
    pixels = np.array([[[0.1, 0.1, 0.1], [0.6, 0.6, 0.6]]], dtype=np.float32)
    stage = LookStage()
    stage.bind(LookSpec.graded(LookKind.VERY_HIGH_CONTRAST, contrast_look_cube(1.2, 1.0, 17)))
    stage.recompile()
    out = stage.apply(Frame(pixels)).pixels
    assert out[0, 0, 0] < pixels[0, 0, 0]
    assert out[0, 1, 0] > pixels[0, 1, 0]
