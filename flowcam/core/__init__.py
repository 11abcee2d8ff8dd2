"""
Core contracts and errors shared by every FlowCam component.
"""

from .contracts import (
    PipelineState,
    CaptureMode,
    Resolution,
    ResolutionConstraints,
    DeviceInfo,
    DeviceCapabilities,
    DeviceRequest,
    FlowParameters,
    IterationResult,
)
from .errors import (
    PipelineError,
    DeviceAccessDenied,
    ConstraintUnsatisfiable,
    DimensionMismatch,
    ProcessingFailure,
    ExportUnavailable,
    BufferReleasedError,
)
