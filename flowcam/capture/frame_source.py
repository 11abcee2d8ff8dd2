"""
Base classes for frame sources.

To add a new frame source:
1. Inherit from FrameSource and FrameStream
2. Implement enumerate_devices(), capabilities() and open()
3. Raise DeviceAccessDenied / ConstraintUnsatisfiable from open()
4. Register it in capture/__init__.py SOURCES dict
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional
import numpy as np
from numpy.typing import NDArray

from flowcam.core.contracts import (
    DeviceInfo,
    DeviceCapabilities,
    Resolution,
    ResolutionConstraints,
)


class FrameStream(ABC):
    """An open stream with a negotiated size."""

    @property
    @abstractmethod
    def width(self) -> int:
        pass

    @property
    @abstractmethod
    def height(self) -> int:
        pass

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)

    @abstractmethod
    def read(self) -> Optional[NDArray[np.uint8]]:
        """Read the next frame.

        Returns:
            uint8 array (H, W), (H, W, 3) BGR or (H, W, 4) RGBA,
            or None if no frame is available
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device."""
        pass


class FrameSource(ABC):
    """Abstract camera subsystem.

    open() may block; the negotiator calls it off the pipeline loop.
    """

    @abstractmethod
    def enumerate_devices(self) -> List[DeviceInfo]:
        pass

    @abstractmethod
    def capabilities(self, device_id: Any) -> Optional[DeviceCapabilities]:
        """Get the device's maximum size, or None if probing failed."""
        pass

    @abstractmethod
    def open(self, device_id: Any, constraints: ResolutionConstraints) -> FrameStream:
        """Open a stream.

        Raises:
            DeviceAccessDenied: If the device refuses access
            ConstraintUnsatisfiable: If exact constraints cannot be met
        """
        pass
