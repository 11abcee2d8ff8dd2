"""
Configuration module for FlowCam.

Settings come from three layers, later ones winning:
1. Dataclass defaults below
2. YAML file (config/settings.yaml or --config PATH)
3. Command-line arguments

FlowControls is the live tuning surface: the pipeline reads it on every
iteration and the keyboard controls mutate it.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Any
import yaml
from loguru import logger

from flowcam.core.contracts import CaptureMode, FlowParameters
from flowcam.capture.presets import DEFAULT_PRESET

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"

# Tunable ranges (inclusive)
FLOW_STEP_RANGE = (2, 64)
WINDOW_SIZE_RANGE = (3, 256)
VECTOR_SCALE_RANGE = (0.1, 5.0)


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass
class FlowControls:
    """Tunables consumed read-only by each pipeline iteration.

    Attributes:
        flow_step: Vector grid spacing in pixels [2, 64]
        window_size: Flow averaging window [3, 256], made odd by the engine
        vector_scale: Vector length multiplier [0.1, 5.0]
        capture_mode: Manual or continuous reference updates
        resolution_preset: Name of the requested resolution preset
        stroke_color: Vector colour as hex string
    """
    flow_step: int = 16
    window_size: int = 15
    vector_scale: float = 1.0
    capture_mode: CaptureMode = CaptureMode.MANUAL
    resolution_preset: str = DEFAULT_PRESET
    stroke_color: str = "#000000"

    # Fixed estimator settings
    pyramid_scale: float = 0.5
    pyramid_levels: int = 3
    iterations: int = 3
    poly_expansion_size: int = 5
    poly_sigma: float = 1.2

    def __post_init__(self):
        self.capture_mode = CaptureMode.parse(self.capture_mode)
        self.clamp()

    def clamp(self) -> FlowControls:
        """Force every tunable into its range."""
        self.flow_step = int(_clamp(int(self.flow_step), *FLOW_STEP_RANGE))
        self.window_size = int(_clamp(int(self.window_size), *WINDOW_SIZE_RANGE))
        self.vector_scale = round(float(_clamp(float(self.vector_scale), *VECTOR_SCALE_RANGE)), 3)
        return self

    def adjust(self, name: str, delta: float) -> Any:
        """Change one tunable by delta and clamp. Returns the new value."""
        setattr(self, name, getattr(self, name) + delta)
        self.clamp()
        return getattr(self, name)

    def toggle_capture_mode(self) -> CaptureMode:
        if self.capture_mode == CaptureMode.MANUAL:
            self.capture_mode = CaptureMode.CONTINUOUS
        else:
            self.capture_mode = CaptureMode.MANUAL
        return self.capture_mode

    def flow_parameters(self) -> FlowParameters:
        return FlowParameters(
            window_size=self.window_size,
            pyramid_scale=self.pyramid_scale,
            pyramid_levels=self.pyramid_levels,
            iterations=self.iterations,
            poly_expansion_size=self.poly_expansion_size,
            poly_sigma=self.poly_sigma,
        )


@dataclass
class VideoConfig:
    """Capture settings."""
    source: str = "webcam"       # "webcam" or "synthetic"
    device_index: int = 0
    frame_rate: float = 30.0
    first_frame_attempts: int = 10
    max_missed_frames: int = 30


@dataclass
class ExportConfig:
    """Export destinations."""
    directory: str = "exports"
    workbook_name: str = "optical_flow_data.xlsx"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = "logs/flowcam.log"


@dataclass
class AppConfig:
    """Main configuration for the application."""
    video: VideoConfig = field(default_factory=VideoConfig)
    controls: FlowControls = field(default_factory=FlowControls)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    headless: bool = False
    display_max_width: int = 1920
    max_frames: Optional[int] = None


def _build_section(cls, values: Optional[dict], section: str):
    """Instantiate a config dataclass from a YAML mapping, ignoring unknown keys."""
    if not values:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown keys in '{section}': {sorted(unknown)}")
    return cls(**{k: v for k, v in values.items() if k in known})


def load_config_file(path: Optional[str] = None) -> dict:
    """Load raw settings from YAML.

    Falls back to config/settings.yaml, then to an empty mapping.
    """
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = DEFAULT_CONFIG_PATH
        if not config_path.exists():
            return {}

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    logger.debug(f"Loaded config from {config_path}")
    return data


def load_config(args: Optional[argparse.Namespace] = None) -> AppConfig:
    """Build the application config from YAML and command-line arguments.

    Args:
        args: Parsed command-line arguments, or None for file/defaults only

    Returns:
        AppConfig with all settings
    """
    raw = load_config_file(getattr(args, "config", None))

    config = AppConfig(
        video=_build_section(VideoConfig, raw.get("video"), "video"),
        controls=_build_section(FlowControls, raw.get("flow"), "flow"),
        export=_build_section(ExportConfig, raw.get("export"), "export"),
        logging=_build_section(LoggingConfig, raw.get("logging"), "logging"),
        headless=bool(raw.get("headless", False)),
        display_max_width=int(raw.get("display_max_width", 1920)),
    )

    if args is None:
        return config

    if getattr(args, "source", None):
        config.video.source = args.source
    if getattr(args, "device", None) is not None:
        config.video.device_index = args.device
    if getattr(args, "preset", None):
        config.controls.resolution_preset = args.preset
    if getattr(args, "continuous", False):
        config.controls.capture_mode = CaptureMode.CONTINUOUS
    if getattr(args, "log_level", None):
        config.logging.level = args.log_level
    if getattr(args, "log_file", None):
        config.logging.file = args.log_file
    if getattr(args, "export_dir", None):
        config.export.directory = args.export_dir
    if getattr(args, "headless", False):
        config.headless = True
    if getattr(args, "max_frames", None) is not None:
        config.max_frames = args.max_frames
    return config


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="FlowCam - live dense optical flow viewer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                              # Default webcam, 480p
  python main.py --preset "720p (1280×720)"   # Request 720p
  python main.py --source synthetic           # No camera needed
  python main.py --continuous                 # Frame-to-frame flow
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--source", "-s",
        choices=["webcam", "synthetic"],
        default=None,
        help="Frame source (default: webcam)",
    )
    parser.add_argument(
        "--device", "-d",
        type=int,
        default=None,
        help="Video device index (default: 0)",
    )
    parser.add_argument(
        "--preset", "-p",
        type=str,
        default=None,
        help="Resolution preset name",
    )
    parser.add_argument(
        "--continuous",
        action="store_true",
        help="Update the reference after every frame",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (default: logs/flowcam.log)",
    )
    parser.add_argument(
        "--export-dir",
        type=str,
        default=None,
        help="Directory for workbooks and screenshots (default: exports)",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without display window",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=None,
        help="Stop after this many loop iterations",
    )

    return parser.parse_args(argv)
