"""
Pipeline context.

Everything a running pipeline owns, bundled in one place and torn down in
one order: buffers, then reference, then stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Callable
import numpy as np
from numpy.typing import NDArray

from flowcam.core.contracts import DeviceCapabilities, Resolution
from flowcam.buffers.buffer_pool import BufferPool
from flowcam.buffers.reference import ReferenceFrameManager
from flowcam.buffers.owned_slot import OwnedSlot
from flowcam.capture.frame_source import FrameStream


def _close_stream(stream: FrameStream) -> None:
    stream.close()


@dataclass
class PipelineContext:
    """Mutable state owned exclusively by one PipelineController."""
    pool: BufferPool
    reference: ReferenceFrameManager
    stream: OwnedSlot[FrameStream] = field(default_factory=lambda: OwnedSlot(_close_stream))

    device_id: Any = None
    capabilities: Optional[DeviceCapabilities] = None

    # Per-stream counters
    frame_index: int = 0
    missed_frames: int = 0
    flows_computed: int = 0

    # Grayscale buffer holds a converted frame for the current size
    gray_ready: bool = False

    # Frame read while (re)acquiring, processed by the next step
    primed_frame: Optional[NDArray[np.uint8]] = None
    first_frame_attempts_left: int = 0
    awaiting_first_frame: bool = False

    # Size the buffers must switch to before resuming
    pending_resize: Optional[Resolution] = None

    @classmethod
    def create(
        cls,
        scheduler_active: Callable[[], bool],
        is_streaming: Callable[[], bool],
    ) -> PipelineContext:
        return cls(
            pool=BufferPool(scheduler_active=scheduler_active),
            reference=ReferenceFrameManager(is_streaming=is_streaming),
        )

    def release_buffers(self):
        """Release working buffers, then the reference frame."""
        self.pool.release()
        self.reference.release()
        self.gray_ready = False

    def teardown(self):
        """Release everything, closing the stream last."""
        self.release_buffers()
        self.stream.clear()
        self.primed_frame = None
        self.pending_resize = None
        self.awaiting_first_frame = False
        self.missed_frames = 0
