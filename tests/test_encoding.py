from __future__ import annotations

import numpy as np
import pytest

from filmic_lut_engine.encoding import Encoding, convert, require_encoding, to_display, to_linear
from filmic_lut_engine.errors import EncodingError
from filmic_lut_engine.frames import Frame


def test_display_roundtrip_within_tolerance():
    values = np.linspace(0.0, 1.0, 4097, dtype=np.float32)
    assert np.max(np.abs(to_linear(to_display(values)) - values)) < 1e-5
    assert np.max(np.abs(to_display(to_linear(values)) - values)) < 1e-5


def test_transfer_endpoints_and_midpoint():
    assert to_display(np.array([0.0, 1.0])).tolist() == pytest.approx([0.0, 1.0], abs=1e-7)
    # Linear 0.18 sits near 46% on the sRGB curve.
    assert float(to_display(np.array(0.18))) == pytest.approx(0.4614, abs=1e-3)


def test_negative_input_is_clamped_to_zero():
    assert to_display(np.array([-0.5])).tolist() == [0.0]
    assert to_linear(np.array([-0.5])).tolist() == [0.0]


def test_values_above_one_follow_the_curve():
    assert float(to_display(np.array(4.0))) > 1.0


def test_convert_between_encodings():
    values = np.array([0.0, 0.25, 0.5, 1.0], dtype=np.float32)
    assert np.array_equal(convert(values, Encoding.LINEAR, Encoding.LINEAR), values)
    assert np.allclose(convert(values, "linear", "display"), to_display(values))
    assert np.allclose(convert(values, Encoding.DISPLAY, Encoding.LINEAR), to_linear(values))


def test_require_encoding_rejects_mismatch():
    frame = Frame(np.zeros((2, 2, 3), dtype=np.float32), Encoding.DISPLAY)
    require_encoding(frame, Encoding.DISPLAY)
    with pytest.raises(EncodingError, match="in look"):
        require_encoding(frame, Encoding.LINEAR, context="look")
