"""
Buffer Pool.

Owns the frame, grayscale and flow buffers for the current resolution.
"""

from __future__ import annotations

from typing import Optional, Callable
from loguru import logger

from flowcam.core.contracts import Resolution
from flowcam.core.errors import PipelineError
from .image import FrameBuffer, GrayscaleBuffer, FlowField
from .owned_slot import OwnedSlot


class BufferPool:
    """
    Sized working buffers for one pipeline.

    Guarantees:
    - After resize() all three buffers report the same width/height
    - Old buffers are released before new ones are allocated
    - resize() refuses to run while the scheduler is active
    """

    def __init__(self, scheduler_active: Optional[Callable[[], bool]] = None):
        """
        Initialize an empty pool.

        Args:
            scheduler_active: Returns True while iterations may be in flight
        """
        self._scheduler_active = scheduler_active or (lambda: False)
        self._frame: OwnedSlot[FrameBuffer] = OwnedSlot()
        self._gray: OwnedSlot[GrayscaleBuffer] = OwnedSlot()
        self._flow: OwnedSlot[FlowField] = OwnedSlot()
        self._resolution: Optional[Resolution] = None
        self.resize_count = 0

    def resize(self, width: int, height: int) -> Resolution:
        """
        Release any existing buffers and allocate fresh ones.

        Args:
            width: Frame width in pixels
            height: Frame height in pixels

        Returns:
            The new resolution

        Raises:
            PipelineError: If called while the scheduler is active
            ValueError: If width or height is not positive
        """
        if self._scheduler_active():
            raise PipelineError("BufferPool.resize called while the scheduler is active")

        resolution = Resolution(int(width), int(height))

        self.release()
        self._frame.replace(FrameBuffer.allocate(resolution))
        self._gray.replace(GrayscaleBuffer.allocate(resolution))
        self._flow.replace(FlowField.allocate(resolution))
        self._resolution = resolution
        self.resize_count += 1

        logger.debug(f"Buffers allocated at {resolution}")
        return resolution

    def release(self) -> bool:
        """
        Release all buffers.

        Returns:
            True if any buffer was held
        """
        released = self._frame.clear()
        released = self._gray.clear() or released
        released = self._flow.clear() or released
        if released:
            logger.debug(f"Buffers released ({self._resolution})")
        self._resolution = None
        return released

    @property
    def resolution(self) -> Optional[Resolution]:
        return self._resolution

    @property
    def is_allocated(self) -> bool:
        return self._resolution is not None

    def _require(self, slot: OwnedSlot):
        value = slot.value
        if value is None:
            raise PipelineError("Buffers are not allocated")
        return value

    @property
    def frame(self) -> FrameBuffer:
        return self._require(self._frame)

    @property
    def gray(self) -> GrayscaleBuffer:
        return self._require(self._gray)

    @property
    def flow(self) -> FlowField:
        return self._require(self._flow)
