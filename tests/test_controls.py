"""
Unit Tests for keyboard controls and control actions.
"""

import pytest

from flowcam.controls import KeyboardControl, apply_action, get_control, next_preset
from flowcam.core.contracts import CaptureMode, PipelineState, Resolution


# ============================================================================
# KEYBOARD
# ============================================================================

@pytest.mark.parametrize("key, action", [
    ("q", "quit"),
    ("c", "capture"),
    ("C", "capture"),
    ("m", "toggle_mode"),
    ("r", "next_preset"),
    ("e", "export"),
    ("s", "screenshot"),
    ("+", "step_up"),
    ("]", "window_up"),
    (",", "scale_down"),
])
def test_key_bindings(key, action):
    assert KeyboardControl().poll(ord(key)) == action


def test_escape_quits_and_unbound_ignored():
    control = KeyboardControl()
    assert control.poll(27) == "quit"
    assert control.poll(ord("x")) is None
    assert control.poll(None) is None


def test_callback_receives_actions():
    seen = []
    control = get_control("keyboard", seen.append)
    control.poll(ord("c"))
    assert seen == ["capture"]


# ============================================================================
# ACTIONS
# ============================================================================

def test_quit_action_returns_false(streaming_controller):
    assert apply_action(streaming_controller, "quit") is False


def test_capture_and_export_actions(streaming_controller):
    streaming_controller.step()
    assert apply_action(streaming_controller, "capture")
    assert streaming_controller.context.reference.has_reference

    streaming_controller.step()
    assert apply_action(streaming_controller, "export")
    assert streaming_controller.export_available


def test_failed_export_is_not_fatal(streaming_controller):
    assert apply_action(streaming_controller, "export") is True
    assert streaming_controller.state == PipelineState.STREAMING


def test_tuning_actions(streaming_controller):
    controls = streaming_controller.controls
    apply_action(streaming_controller, "step_up")
    apply_action(streaming_controller, "window_down")
    apply_action(streaming_controller, "toggle_mode")
    assert controls.flow_step == 18
    assert controls.window_size == 13
    assert controls.capture_mode == CaptureMode.CONTINUOUS


def test_next_preset_wraps(streaming_controller):
    names = list(streaming_controller.available_presets())
    assert next_preset(streaming_controller) == names[0]  # 480p is last

    apply_action(streaming_controller, "next_preset")
    streaming_controller.poll()
    assert streaming_controller.resolution == Resolution(3840, 2160)
