"""
Resolution presets offered to the user.
"""

from __future__ import annotations

from typing import Optional, Dict

from flowcam.core.contracts import Resolution, DeviceCapabilities

AUTO_MAX = "Auto (Max)"
DEFAULT_PRESET = "480p (640×480)"

# Bounds assumed when the device does not report capabilities
FALLBACK_MAX_WIDTH = 4096
FALLBACK_MAX_HEIGHT = 2160

RESOLUTION_PRESETS: Dict[str, Resolution] = {
    "4K (3840×2160)": Resolution(3840, 2160),
    "1440p (2560×1440)": Resolution(2560, 1440),
    "1080p (1920×1080)": Resolution(1920, 1080),
    "720p (1280×720)": Resolution(1280, 720),
    "480p (640×480)": Resolution(640, 480),
}


def available_presets(capabilities: Optional[DeviceCapabilities]) -> Dict[str, Resolution]:
    """
    Filter presets to those the device can deliver.

    "Auto (Max)" is offered first, and only when capabilities are known.
    Without capabilities, presets are bounded by 4096x2160.
    """
    bounds = capabilities or DeviceCapabilities(FALLBACK_MAX_WIDTH, FALLBACK_MAX_HEIGHT)

    offered: Dict[str, Resolution] = {}
    if capabilities is not None:
        offered[AUTO_MAX] = Resolution(capabilities.max_width, capabilities.max_height)

    for name, resolution in RESOLUTION_PRESETS.items():
        if bounds.allows(resolution):
            offered[name] = resolution
    return offered


def resolve_preset(name: str, capabilities: Optional[DeviceCapabilities]) -> Resolution:
    """
    Map a preset name to a target resolution.

    Raises:
        KeyError: If the name is unknown
    """
    if name == AUTO_MAX:
        if capabilities is None:
            return Resolution(FALLBACK_MAX_WIDTH, FALLBACK_MAX_HEIGHT)
        return Resolution(capabilities.max_width, capabilities.max_height)
    if name not in RESOLUTION_PRESETS:
        available = ", ".join([AUTO_MAX, *RESOLUTION_PRESETS.keys()])
        raise KeyError(f"Unknown resolution preset '{name}'. Available: {available}")
    return RESOLUTION_PRESETS[name]
