"""
Unit Tests for capture: presets, synthetic source and negotiation.
"""

import pytest

from flowcam.capture import (
    AUTO_MAX,
    DeviceNegotiator,
    SyntheticFrameSource,
    available_presets,
    get_source,
    list_sources,
    resolve_preset,
)
from flowcam.core.contracts import (
    DeviceCapabilities,
    DeviceRequest,
    Resolution,
    ResolutionConstraints,
)
from flowcam.core.errors import ConstraintUnsatisfiable, DeviceAccessDenied


# ============================================================================
# PRESETS
# ============================================================================

def test_auto_offered_first_when_capabilities_known():
    presets = available_presets(DeviceCapabilities(1920, 1080))
    names = list(presets)
    assert names[0] == AUTO_MAX
    assert presets[AUTO_MAX] == Resolution(1920, 1080)
    assert "4K (3840×2160)" not in presets
    assert "1080p (1920×1080)" in presets


def test_auto_hidden_without_capabilities():
    presets = available_presets(None)
    assert AUTO_MAX not in presets
    assert "4K (3840×2160)" in presets


def test_resolve_unknown_preset():
    with pytest.raises(KeyError):
        resolve_preset("8K", None)


def test_resolve_auto_uses_capabilities():
    assert resolve_preset(AUTO_MAX, DeviceCapabilities(1280, 720)) == Resolution(1280, 720)


# ============================================================================
# SOURCES
# ============================================================================

def test_source_registry():
    assert set(list_sources()) == {"webcam", "synthetic"}
    assert isinstance(get_source("synthetic"), SyntheticFrameSource)
    with pytest.raises(ValueError):
        get_source("nope")


def test_synthetic_stream_drifts():
    source = SyntheticFrameSource(velocity=(3, 0))
    stream = source.open(0, ResolutionConstraints(640, 480))
    first, second = stream.read(), stream.read()
    assert first.shape == (480, 640, 3)
    assert (second[:, 3:] == first[:, :-3]).all()
    stream.close()
    assert stream.read() is None


def test_synthetic_exact_vs_ideal():
    source = SyntheticFrameSource(resolutions=[Resolution(320, 240), Resolution(800, 600)])
    with pytest.raises(ConstraintUnsatisfiable):
        source.open(0, ResolutionConstraints(640, 480, exact=True))
    stream = source.open(0, ResolutionConstraints(640, 480, exact=False))
    assert stream.resolution == Resolution(320, 240)


# ============================================================================
# NEGOTIATION
# ============================================================================

def _request(generation=1, device_id=0, resolution=Resolution(640, 480)):
    return DeviceRequest(device_id=device_id, resolution=resolution, generation=generation)


def test_negotiation_falls_back_to_ideal(deferred_executor):
    source = SyntheticFrameSource(resolutions=[Resolution(320, 240)])
    negotiator = DeviceNegotiator(source, executor=deferred_executor)

    negotiation = negotiator.submit(_request(generation=4))
    assert not negotiation.done()
    deferred_executor.run_all()

    assert negotiation.generation == 4
    assert negotiation.future.result().resolution == Resolution(320, 240)
    assert [c.exact for _, c in source.open_calls] == [True, False]


def test_negotiation_access_denied_not_retried(deferred_executor):
    source = SyntheticFrameSource(deny_access=True)
    negotiator = DeviceNegotiator(source, executor=deferred_executor)

    negotiation = negotiator.submit(_request())
    deferred_executor.run_all()

    assert isinstance(negotiation.future.exception(), DeviceAccessDenied)
    assert len(source.open_calls) == 1
