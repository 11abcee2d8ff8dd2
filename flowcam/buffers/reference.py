"""
Reference Frame Management.

Handles:
- Manual capture of a reference snapshot
- Continuous (frame-to-frame) differencing
- Invalidation when the live resolution changes
- Export availability tracking
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Callable
from loguru import logger

from flowcam.core.contracts import CaptureMode, Resolution
from .image import GrayscaleBuffer
from .owned_slot import OwnedSlot


@dataclass
class ReferenceFrame:
    """An owned grayscale snapshot and the resolution it was captured at."""
    gray: GrayscaleBuffer
    resolution: Resolution

    def release(self):
        self.gray.release()


class ReferenceFrameManager:
    """
    Owns at most one reference frame.

    Guarantees:
    - The previous reference is released before a new one is stored
    - A reference whose resolution differs from the live frame is never
      handed to the flow engine
    - Export is available only after a flow field was produced for the
      current reference
    """

    def __init__(
        self,
        is_streaming: Optional[Callable[[], bool]] = None,
        mode: CaptureMode = CaptureMode.MANUAL,
    ):
        """
        Initialize reference frame manager.

        Args:
            is_streaming: Returns True while the pipeline is streaming
            mode: Initial capture mode
        """
        self._is_streaming = is_streaming or (lambda: True)
        self.mode = mode
        self._slot: OwnedSlot[ReferenceFrame] = OwnedSlot()
        self._flow_produced = False

        self.replacement_count = 0
        self.invalidation_count = 0

    @property
    def reference(self) -> Optional[ReferenceFrame]:
        return self._slot.value

    @property
    def has_reference(self) -> bool:
        return not self._slot.is_empty()

    @property
    def export_available(self) -> bool:
        return self._flow_produced

    def capture(self, current_gray: GrayscaleBuffer) -> bool:
        """
        Store a copy of the current grayscale frame as the new reference.

        No-op unless the pipeline is streaming.

        Returns:
            True if a reference was captured
        """
        if not self._is_streaming():
            logger.debug("Reference capture ignored: pipeline not streaming")
            return False

        self._store(current_gray)
        self._flow_produced = False
        logger.info(f"Reference frame captured at {current_gray.resolution}")
        return True

    def update_continuous(self, current_gray: GrayscaleBuffer):
        """Replace the reference with the current frame (continuous mode)."""
        self._store(current_gray)

    def invalidate_if_mismatched(self, frame_resolution: Resolution) -> bool:
        """
        Drop the reference if it no longer matches the live frame size.

        Returns:
            True if the reference was invalidated
        """
        ref = self._slot.value
        if ref is None or ref.resolution == frame_resolution:
            return False

        logger.warning(
            f"Dimension mismatch: reference {ref.resolution} vs frame {frame_resolution}, "
            "clearing reference"
        )
        self._invalidate()
        return True

    def mark_flow_produced(self):
        self._flow_produced = True

    def release(self) -> bool:
        """
        Drop the reference and the export affordance.

        Returns:
            True if a reference was held
        """
        if self._slot.is_empty():
            self._flow_produced = False
            return False
        logger.info("Clearing reference frame")
        self._invalidate()
        return True

    def _store(self, current_gray: GrayscaleBuffer):
        snapshot = current_gray.copy()
        self._slot.replace(ReferenceFrame(gray=snapshot, resolution=snapshot.resolution))
        self.replacement_count += 1

    def _invalidate(self):
        self._slot.clear()
        self._flow_produced = False
        self.invalidation_count += 1
