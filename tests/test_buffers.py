"""
Unit Tests for buffers: image buffers, owned slots, buffer pool and
reference frame management.
"""

import numpy as np
import pytest

from flowcam.buffers import (
    BufferPool,
    FlowField,
    FrameBuffer,
    GrayscaleBuffer,
    OwnedSlot,
    ReferenceFrameManager,
)
from flowcam.core.contracts import CaptureMode, Resolution
from flowcam.core.errors import BufferReleasedError, PipelineError


# ============================================================================
# IMAGE BUFFERS
# ============================================================================

def test_allocate_shapes():
    res = Resolution(64, 48)
    assert FrameBuffer.allocate(res).data.shape == (48, 64, 4)
    assert GrayscaleBuffer.allocate(res).data.shape == (48, 64)
    flow = FlowField.allocate(res)
    assert flow.data.shape == (48, 64, 2)
    assert flow.data.dtype == np.float32


def test_buffer_rejects_wrong_layout():
    with pytest.raises(ValueError):
        GrayscaleBuffer(np.zeros((4, 4, 3), dtype=np.uint8))
    with pytest.raises(ValueError):
        FlowField(np.zeros((4, 4, 2), dtype=np.float64))


def test_released_buffer_cannot_be_read():
    buf = GrayscaleBuffer.allocate(Resolution(8, 8))
    buf.release()
    assert buf.released
    with pytest.raises(BufferReleasedError):
        _ = buf.data
    buf.release()  # second release is a no-op


def test_copy_is_independent():
    buf = GrayscaleBuffer(np.full((4, 4), 3, dtype=np.uint8))
    clone = buf.copy()
    buf.data[0, 0] = 200
    assert clone.data[0, 0] == 3


# ============================================================================
# OWNED SLOT
# ============================================================================

def test_owned_slot_releases_old_before_storing_new():
    events = []
    slot = OwnedSlot(releaser=lambda v: events.append(("release", v)))
    slot.replace("a")
    assert slot.replace("b") is True
    assert events == [("release", "a")]
    assert slot.value == "b"
    assert slot.clear() is True
    assert slot.is_empty()
    assert slot.clear() is False
    assert slot.release_count == 2


# ============================================================================
# BUFFER POOL
# ============================================================================

def test_pool_resize_keeps_buffers_consistent():
    pool = BufferPool()
    pool.resize(320, 240)
    old_gray = pool.gray

    res = pool.resize(640, 480)

    assert res == Resolution(640, 480)
    for buf in (pool.frame, pool.gray, pool.flow):
        assert buf.resolution == res
    assert old_gray.released
    assert pool.resize_count == 2


def test_pool_resize_refused_while_scheduler_active():
    active = {"value": True}
    pool = BufferPool(scheduler_active=lambda: active["value"])
    with pytest.raises(PipelineError):
        pool.resize(64, 64)
    active["value"] = False
    pool.resize(64, 64)
    assert pool.is_allocated


def test_pool_release_empties():
    pool = BufferPool()
    assert pool.release() is False
    pool.resize(32, 32)
    assert pool.release() is True
    assert pool.resolution is None
    with pytest.raises(PipelineError):
        _ = pool.frame


def test_pool_rejects_non_positive_size():
    with pytest.raises(ValueError):
        BufferPool().resize(0, 480)


# ============================================================================
# REFERENCE FRAME MANAGER
# ============================================================================

@pytest.fixture
def gray_640():
    return GrayscaleBuffer(np.random.default_rng(0).integers(0, 255, (480, 640), dtype=np.uint8))


def test_capture_ignored_when_not_streaming(gray_640):
    manager = ReferenceFrameManager(is_streaming=lambda: False)
    assert manager.capture(gray_640) is False
    assert not manager.has_reference


def test_capture_stores_copy_and_resets_export(gray_640):
    manager = ReferenceFrameManager()
    manager.capture(gray_640)
    manager.mark_flow_produced()
    assert manager.export_available

    gray_640.data[:] = 0
    assert manager.reference.gray.data.any()

    manager.capture(gray_640)
    assert not manager.export_available
    assert manager.replacement_count == 2


def test_replaced_reference_is_released(gray_640):
    manager = ReferenceFrameManager()
    manager.capture(gray_640)
    first = manager.reference
    manager.capture(gray_640)
    assert first.gray.released


def test_mismatched_reference_invalidated_once(gray_640):
    manager = ReferenceFrameManager()
    manager.capture(gray_640)
    manager.mark_flow_produced()

    assert manager.invalidate_if_mismatched(Resolution(1280, 720)) is True
    assert not manager.has_reference
    assert not manager.export_available
    assert manager.invalidate_if_mismatched(Resolution(1280, 720)) is False
    assert manager.invalidation_count == 1


def test_matching_reference_kept(gray_640):
    manager = ReferenceFrameManager()
    manager.capture(gray_640)
    assert manager.invalidate_if_mismatched(Resolution(640, 480)) is False
    assert manager.has_reference


def test_continuous_update_keeps_export(gray_640):
    manager = ReferenceFrameManager(mode=CaptureMode.CONTINUOUS)
    manager.update_continuous(gray_640)
    manager.mark_flow_produced()
    manager.update_continuous(gray_640)
    assert manager.export_available
    assert manager.replacement_count == 2
