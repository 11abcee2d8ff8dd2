"""
Buffer Module.

Responsibilities:
- Sized frame, grayscale and flow buffers
- Single-owner slots with release-before-replace
- Reference frame lifecycle
"""

from .image import ImageBuffer, FrameBuffer, GrayscaleBuffer, FlowField
from .owned_slot import OwnedSlot
from .buffer_pool import BufferPool
from .reference import ReferenceFrame, ReferenceFrameManager
