"""
Video Capture Module.

Responsibilities:
- Camera access and enumeration
- Resolution presets and capability filtering
- Generation-tagged stream negotiation

To add a new source, implement FrameSource and register it in SOURCES.
"""

from typing import Callable, Dict, List

from .frame_source import FrameSource, FrameStream
from .webcam import OpenCVFrameSource
from .synthetic import SyntheticFrameSource, make_texture, shift_texture
from .negotiation import DeviceNegotiator, Negotiation
from .presets import (
    RESOLUTION_PRESETS,
    AUTO_MAX,
    DEFAULT_PRESET,
    available_presets,
    resolve_preset,
)

# Registry of available sources
SOURCES: Dict[str, Callable[[], FrameSource]] = {
    "webcam": OpenCVFrameSource,
    "synthetic": SyntheticFrameSource,
}


def get_source(name: str) -> FrameSource:
    """Get a source instance by name.

    Raises:
        ValueError: If source name is not registered
    """
    if name not in SOURCES:
        available = ", ".join(SOURCES.keys())
        raise ValueError(f"Unknown source '{name}'. Available: {available}")
    return SOURCES[name]()


def list_sources() -> List[str]:
    """List available source names."""
    return list(SOURCES.keys())
