"""
conftest.py - shared fixtures: a small baked LUT set and a small test scene.
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from filmic_lut_engine.bake import bake_reference_luts
from filmic_lut_engine.batch import BatchOrchestrator
from filmic_lut_engine.compositor import Compositor
from filmic_lut_engine.lut_store import LutStore
from filmic_lut_engine.scene import reference_test_scene

LUT_SIZE = 9
FRAME_WIDTH = 48
FRAME_HEIGHT = 27


@pytest.fixture
def lut_dir(tmp_path: Path) -> Path:
    """Procedural reference LUT set written as KTX2 into a temp folder."""
    root = tmp_path / "luts"
    bake_reference_luts(root, size=LUT_SIZE)
    return root


@pytest.fixture
def small_scene():
    return reference_test_scene(FRAME_WIDTH, FRAME_HEIGHT)


@pytest.fixture
def compositor(small_scene) -> Compositor:
    return Compositor(FRAME_WIDTH, FRAME_HEIGHT, scene=small_scene)


@pytest.fixture
def orchestrator(compositor, lut_dir) -> BatchOrchestrator:
    return BatchOrchestrator(compositor, LutStore(lut_dir))
