"""
Sized pixel buffers.

Each buffer wraps a row-major numpy array and can be released exactly once.
After release the array is dropped and any access raises
BufferReleasedError, so a stale buffer can never be read or written.
"""

from __future__ import annotations

from typing import Optional, ClassVar
import numpy as np
from numpy.typing import NDArray

from flowcam.core.contracts import Resolution
from flowcam.core.errors import BufferReleasedError


class ImageBuffer:
    """Base class for an owned, releasable pixel buffer."""

    channels: ClassVar[int] = 1
    dtype: ClassVar[type] = np.uint8

    def __init__(self, data: NDArray):
        expected_ndim = 2 if self.channels == 1 else 3
        if data.ndim != expected_ndim:
            raise ValueError(
                f"{type(self).__name__} expects {expected_ndim}-D data, got shape {data.shape}"
            )
        if expected_ndim == 3 and data.shape[2] != self.channels:
            raise ValueError(
                f"{type(self).__name__} expects {self.channels} channels, got {data.shape[2]}"
            )
        if data.dtype != self.dtype:
            raise ValueError(
                f"{type(self).__name__} expects dtype {np.dtype(self.dtype)}, got {data.dtype}"
            )
        self._data: Optional[NDArray] = data
        self._resolution = Resolution(width=int(data.shape[1]), height=int(data.shape[0]))

    @classmethod
    def allocate(cls, resolution: Resolution) -> ImageBuffer:
        """Allocate a zeroed buffer at the given resolution."""
        if cls.channels == 1:
            shape = resolution.shape
        else:
            shape = (*resolution.shape, cls.channels)
        return cls(np.zeros(shape, dtype=cls.dtype))

    @property
    def data(self) -> NDArray:
        if self._data is None:
            raise BufferReleasedError(f"{type(self).__name__} {self._resolution} was released")
        return self._data

    @property
    def resolution(self) -> Resolution:
        return self._resolution

    @property
    def width(self) -> int:
        return self._resolution.width

    @property
    def height(self) -> int:
        return self._resolution.height

    @property
    def released(self) -> bool:
        return self._data is None

    def release(self):
        """Drop the pixel data. Releasing twice is a no-op."""
        self._data = None

    def copy(self) -> ImageBuffer:
        """Return an independently owned copy."""
        return type(self)(self.data.copy())

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"{type(self).__name__}({self._resolution}, {state})"


class FrameBuffer(ImageBuffer):
    """Raw RGBA frame, shape (H, W, 4), uint8."""
    channels = 4
    dtype = np.uint8


class GrayscaleBuffer(ImageBuffer):
    """Single-channel luminance, shape (H, W), uint8."""
    channels = 1
    dtype = np.uint8


class FlowField(ImageBuffer):
    """Per-pixel (dx, dy) displacement, shape (H, W, 2), float32."""
    channels = 2
    dtype = np.float32

    @property
    def dx(self) -> NDArray[np.float32]:
        return self.data[:, :, 0]

    @property
    def dy(self) -> NDArray[np.float32]:
        return self.data[:, :, 1]
