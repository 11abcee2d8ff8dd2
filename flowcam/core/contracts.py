"""
Core data contracts for FlowCam.

All components exchange these types:
- Resolutions and negotiation constraints
- Pipeline and capture-mode enumerations
- Flow estimation parameters
- Per-iteration results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any


# ============================================================
# ENUMERATIONS
# ============================================================

class PipelineState(Enum):
    """Lifecycle states of the pipeline controller."""
    UNINITIALIZED = "uninitialized"
    ACQUIRING = "acquiring"
    STREAMING = "streaming"
    RECONFIGURING = "reconfiguring"
    STOPPED = "stopped"


class CaptureMode(Enum):
    """Reference frame update policy."""
    MANUAL = "manual"          # Only on explicit capture
    CONTINUOUS = "continuous"  # After every processed frame

    @classmethod
    def parse(cls, value: Any) -> CaptureMode:
        if isinstance(value, CaptureMode):
            return value
        if isinstance(value, bool):
            return cls.CONTINUOUS if value else cls.MANUAL
        return cls(str(value).strip().lower())


# ============================================================
# CORE DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class Resolution:
    """Frame size in pixels."""
    width: int
    height: int

    def __post_init__(self):
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise ValueError(f"Invalid resolution {self.width}x{self.height}")

    @property
    def shape(self) -> tuple[int, int]:
        """Row-major (height, width) shape."""
        return (self.height, self.width)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class ResolutionConstraints:
    """
    Constraints handed to a frame source when opening a stream.

    With exact=True the source must deliver exactly width x height or fail;
    otherwise the size is only a preference.
    """
    width: int
    height: int
    exact: bool = True
    frame_rate: float = 30.0

    def relaxed(self) -> ResolutionConstraints:
        return ResolutionConstraints(
            width=self.width,
            height=self.height,
            exact=False,
            frame_rate=self.frame_rate,
        )


@dataclass(frozen=True)
class DeviceInfo:
    """An enumerated capture device."""
    device_id: Any
    label: str = ""


@dataclass(frozen=True)
class DeviceCapabilities:
    """Upper bounds reported by a capture device."""
    max_width: int
    max_height: int

    def allows(self, resolution: Resolution) -> bool:
        return resolution.width <= self.max_width and resolution.height <= self.max_height


@dataclass(frozen=True)
class DeviceRequest:
    """A device/resolution change request tagged with its generation."""
    device_id: Any
    resolution: Resolution
    generation: int
    frame_rate: float = 30.0


@dataclass(frozen=True)
class FlowParameters:
    """
    Dense flow estimation parameters.

    window_size is parity-corrected by the flow engine on every call.
    """
    window_size: int = 15
    pyramid_scale: float = 0.5
    pyramid_levels: int = 3
    iterations: int = 3
    poly_expansion_size: int = 5
    poly_sigma: float = 1.2


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class IterationResult:
    """Outcome of one pipeline iteration."""
    frame_index: int
    resolution: Optional[Resolution] = None

    flow_computed: bool = False
    reference_invalidated: bool = False
    reference_replaced: bool = False

    latency_ms: float = 0.0

    # Iteration ended early without drawing
    skipped: bool = False
    skip_reason: Optional[str] = None

    stats: dict[str, float] = field(default_factory=dict)
