"""
Error taxonomy for the streaming pipeline.

Every error raised by the pipeline derives from PipelineError so the
controller can report them uniformly.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base error for the streaming pipeline."""


class DeviceAccessDenied(PipelineError):
    """The camera refused access (permission denied or device unavailable)."""

    def __init__(self, device_id: object, reason: str = "access denied"):
        self.device_id = device_id
        self.reason = reason
        super().__init__(f"Device {device_id!r}: {reason}")


class ConstraintUnsatisfiable(PipelineError):
    """The requested device/resolution could not be negotiated."""

    def __init__(self, device_id: object, width: int, height: int, exact: bool = True):
        self.device_id = device_id
        self.width = width
        self.height = height
        self.exact = exact
        kind = "exact" if exact else "ideal"
        super().__init__(
            f"Device {device_id!r} cannot satisfy {kind} constraints {width}x{height}"
        )


class DimensionMismatch(PipelineError, ValueError):
    """Two frames handed to the same operation differ in size."""


class ProcessingFailure(PipelineError):
    """Unexpected failure while capturing, converting, computing or drawing."""


class ExportUnavailable(PipelineError):
    """Export requested before a flow field exists for the current reference."""


class BufferReleasedError(PipelineError):
    """A released buffer was accessed."""
