"""
Unit Tests for the dense flow engine.
"""

import numpy as np
import pytest

from flowcam.buffers.image import FlowField, GrayscaleBuffer
from flowcam.capture.synthetic import shift_texture
from flowcam.core.contracts import FlowParameters, Resolution
from flowcam.core.errors import DimensionMismatch
from flowcam.flow import FlowEngine, compute_flow, normalize_window_size


# ============================================================================
# WINDOW SIZE PARITY
# ============================================================================

@pytest.mark.parametrize("requested, used", [(16, 17), (15, 15), (3, 3), (4, 5), (256, 257)])
def test_window_size_made_odd(requested, used):
    assert normalize_window_size(requested) == used


def test_even_window_size_passed_odd(monkeypatch, texture):
    seen = {}

    def fake_farneback(prev, nxt, flow, pyr_scale, levels, winsize, *rest):
        seen["winsize"] = winsize
        return np.zeros((*prev.shape, 2), dtype=np.float32)

    monkeypatch.setattr("flowcam.flow.engine.cv2.calcOpticalFlowFarneback", fake_farneback)
    gray = GrayscaleBuffer(texture)
    compute_flow(gray, gray, FlowParameters(window_size=16))
    assert seen["winsize"] == 17


# ============================================================================
# FLOW ESTIMATION
# ============================================================================

def test_identical_frames_give_near_zero_flow(texture):
    gray = GrayscaleBuffer(texture)
    flow = compute_flow(gray, gray, FlowParameters())
    assert flow.resolution == Resolution(640, 480)
    assert np.abs(flow.data).max() < 0.05


def test_horizontal_shift_recovered(texture):
    """Content moved 5 px right: interior dx ~ 5, dy ~ 0."""
    reference = GrayscaleBuffer(texture)
    current = GrayscaleBuffer(shift_texture(texture, 5, 0))

    flow = FlowEngine().compute(reference, current)

    margin = 40
    interior = flow.data[margin:-margin, margin:-margin]
    assert abs(float(interior[..., 0].mean()) - 5.0) < 0.5
    assert abs(float(interior[..., 1].mean())) < 0.5


def test_output_written_into_preallocated_buffer(texture):
    reference = GrayscaleBuffer(texture)
    current = GrayscaleBuffer(shift_texture(texture, 2, 0))
    out = FlowField.allocate(reference.resolution)

    result = compute_flow(reference, current, FlowParameters(), out=out)

    assert result is out
    assert float(np.abs(out.data).mean()) > 0.5


def test_mismatched_inputs_rejected(texture):
    reference = GrayscaleBuffer(texture)
    current = GrayscaleBuffer(np.zeros((240, 320), dtype=np.uint8))
    with pytest.raises(DimensionMismatch):
        compute_flow(reference, current, FlowParameters())


def test_engine_tracks_timing(texture):
    engine = FlowEngine()
    gray = GrayscaleBuffer(texture)
    assert engine.average_time_ms == 0.0
    engine.compute(gray, gray)
    assert engine.average_time_ms > 0.0
