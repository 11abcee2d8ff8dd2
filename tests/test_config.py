"""
Unit Tests for configuration loading and live controls.
"""

import pytest

from flowcam.config import (
    FlowControls,
    load_config,
    load_config_file,
    parse_args,
)
from flowcam.core.contracts import CaptureMode


# ============================================================================
# FLOW CONTROLS
# ============================================================================

def test_controls_clamped_on_creation():
    controls = FlowControls(flow_step=1, window_size=1000, vector_scale=9.0)
    assert controls.flow_step == 2
    assert controls.window_size == 256
    assert controls.vector_scale == 5.0


def test_adjust_clamps():
    controls = FlowControls(flow_step=62)
    assert controls.adjust("flow_step", 4) == 64
    assert controls.adjust("vector_scale", -10) == 0.1


def test_capture_mode_parsing_and_toggle():
    controls = FlowControls(capture_mode="continuous")
    assert controls.capture_mode == CaptureMode.CONTINUOUS
    assert controls.toggle_capture_mode() == CaptureMode.MANUAL
    assert FlowControls(capture_mode=True).capture_mode == CaptureMode.CONTINUOUS


def test_flow_parameters_carry_window_size():
    assert FlowControls(window_size=16).flow_parameters().window_size == 16


# ============================================================================
# FILE + CLI
# ============================================================================

def test_missing_explicit_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_file(str(tmp_path / "missing.yaml"))


def test_yaml_sections_loaded(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "video:\n"
        "  source: synthetic\n"
        "  max_missed_frames: 5\n"
        "flow:\n"
        "  flow_step: 8\n"
        "  capture_mode: continuous\n"
        "  bogus: 1\n"
        "export:\n"
        "  directory: out\n",
        encoding="utf-8",
    )
    config = load_config(parse_args(["--config", str(path)]))

    assert config.video.source == "synthetic"
    assert config.video.max_missed_frames == 5
    assert config.controls.flow_step == 8
    assert config.controls.capture_mode == CaptureMode.CONTINUOUS
    assert config.export.directory == "out"


def test_cli_overrides_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("video:\n  device_index: 2\n", encoding="utf-8")
    args = parse_args([
        "--config", str(path),
        "--device", "1",
        "--source", "synthetic",
        "--continuous",
        "--headless",
        "--max-frames", "10",
        "--export-dir", "exports2",
    ])
    config = load_config(args)

    assert config.video.device_index == 1
    assert config.video.source == "synthetic"
    assert config.controls.capture_mode == CaptureMode.CONTINUOUS
    assert config.headless is True
    assert config.max_frames == 10
    assert config.export.directory == "exports2"


def test_non_mapping_config_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config_file(str(path))
