from __future__ import annotations

import asyncio
import warnings

import numpy as np
import pytest

from filmic_lut_engine.bake import contrast_look_cube, filmic_base_cube
from filmic_lut_engine.compositor import Compositor, PipelineConfig, quantize_display
from filmic_lut_engine.encoding import Encoding
from filmic_lut_engine.errors import EncodingError, LutShapeError, StalePipelineError
from filmic_lut_engine.frames import Frame
from filmic_lut_engine.scene import (
    DEFAULT_CLEAR_COLOR,
    BackgroundRasterizer,
    Camera,
    Scene,
    hex_to_linear,
    reference_test_scene,
)
from filmic_lut_engine.stages import LookKind, LookSpec, ViewSpec

from conftest import FRAME_HEIGHT, FRAME_WIDTH


def _config(view=None, look=None) -> PipelineConfig:
    return PipelineConfig(
        FRAME_WIDTH,
        FRAME_HEIGHT,
        view if view is not None else ViewSpec.none(),
        look if look is not None else LookSpec.none(),
    )


def _compile(compositor: Compositor, config: PipelineConfig) -> PipelineConfig:
    compositor.bind(config)
    return compositor.recompile()


def test_render_requires_recompile_first(compositor):
    with pytest.raises(StalePipelineError):
        compositor.render(_config())


def test_render_and_encode_are_idempotent(compositor):
    config = _config(ViewSpec.filmic(filmic_base_cube(9)), LookSpec.graded(
        LookKind.MEDIUM_CONTRAST, contrast_look_cube(0.70, 1.03, 9)))
    _compile(compositor, config)
    first = compositor.encode(compositor.render(config), "a")
    second = compositor.encode(compositor.render(config), "a")
    assert first.same_pixels(second)
    assert (first.width, first.height) == (FRAME_WIDTH, FRAME_HEIGHT)


def test_binding_new_look_without_recompile_raises(compositor):
    config = _config(ViewSpec.filmic(filmic_base_cube(9)))
    _compile(compositor, config)
    compositor.render(config)

    regraded = _config(config.view, LookSpec.graded(LookKind.LOW_CONTRAST, contrast_look_cube(0.48, 1.09, 9)))
    compositor.bind(regraded)
    with pytest.raises(StalePipelineError):
        compositor.render(regraded)
    with pytest.raises(StalePipelineError):
        compositor.render(config)
    compositor.recompile()
    compositor.render(regraded)


def test_render_rejects_config_that_was_not_compiled(compositor):
    _compile(compositor, _config())
    other = _config(ViewSpec.filmic(filmic_base_cube(9)))
    with pytest.raises(StalePipelineError, match="never compiled"):
        compositor.render(other)


def test_recompile_rejects_mismatched_lut_sizes(compositor):
    config = _config(
        ViewSpec.filmic(filmic_base_cube(9)),
        LookSpec.graded(LookKind.HIGH_CONTRAST, contrast_look_cube(0.99, 1.0075, 5)),
    )
    compositor.bind(config)
    with pytest.raises(LutShapeError, match="share a size"):
        compositor.recompile()


def test_bind_rejects_wrong_frame_size(compositor):
    with pytest.raises(ValueError):
        compositor.bind(PipelineConfig(FRAME_WIDTH + 1, FRAME_HEIGHT))


def test_identity_pipeline_encodes_radiance_directly(compositor, small_scene):
    config = _config()
    _compile(compositor, config)
    frame = compositor.render(config)
    assert np.array_equal(frame.pixels, small_scene.background)
    image = compositor.encode(frame, "none")
    assert image.entry_id == "none"
    assert image.pixels.dtype == np.uint8


def test_render_async_matches_render(compositor):
    config = _config(ViewSpec.filmic(filmic_base_cube(9)))
    _compile(compositor, config)
    sync_frame = compositor.render(config)
    async_frame = asyncio.run(compositor.render_async(config))
    assert np.array_equal(sync_frame.pixels, async_frame.pixels)


def test_encode_requires_linear_frame(compositor):
    with pytest.raises(EncodingError):
        compositor.encode(Frame(np.zeros((2, 2, 3)), Encoding.DISPLAY))


def test_quantize_clips_and_rounds():
    values = np.array([-0.2, 0.0, 0.5, 1.0, 3.0], dtype=np.float32)
    assert quantize_display(values).tolist() == [0, 0, 128, 255, 255]


def test_rasterizer_size_must_match():
    with pytest.raises(ValueError):
        Compositor(16, 9, rasterizer=BackgroundRasterizer(8, 9))


def test_clear_color_fills_viewport_without_background():
    raster = BackgroundRasterizer(4, 3)
    out = raster.render_scene(Camera(), Scene())
    assert out.shape == (3, 4, 3)
    assert np.allclose(out, np.asarray(DEFAULT_CLEAR_COLOR, dtype=np.float32))
    assert hex_to_linear(0xFFFFFF) == pytest.approx((1.0, 1.0, 1.0))


def test_camera_exposure_scales_radiance():
    scene = reference_test_scene(8, 6)
    raster = BackgroundRasterizer(8, 6)
    base = raster.render_scene(Camera(), scene)
    brighter = raster.render_scene(Camera(exposure=1.0), scene)
    assert np.allclose(brighter, base * 2.0)


def test_camera_frustum_crops_background():
    background = np.zeros((3, 3, 3), dtype=np.float32)
    background[1, 1] = 5.0
    raster = BackgroundRasterizer(2, 2)
    out = raster.render_scene(Camera(left=0.0, right=0.5, top=0.0, bottom=-0.5), Scene(background))
    # The top-left output pixel lands on the background centre.
    assert out[0, 0].tolist() == [5.0, 5.0, 5.0]
    assert out[1, 1].tolist() == [0.0, 0.0, 0.0]


def test_quantize_maps_non_finite_values_without_warnings():
    values = np.array([np.nan, np.inf, -np.inf, 0.5], dtype=np.float32)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert quantize_display(values).tolist() == [0, 255, 0, 128]


def test_encode_nan_radiance_through_identity_stages(compositor):
    frame = Frame(np.full((2, 2, 3), np.nan, dtype=np.float32), Encoding.LINEAR)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        image = compositor.encode(frame, "nan")
    assert image.pixels.max() == 0
