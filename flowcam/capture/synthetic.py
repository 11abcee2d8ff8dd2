"""
Synthetic frame source for demos and testing without a camera.

Produces a smooth random texture that drifts by a fixed velocity every
frame, so the expected flow is known exactly.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Tuple
import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from flowcam.core.contracts import (
    DeviceInfo,
    DeviceCapabilities,
    Resolution,
    ResolutionConstraints,
)
from flowcam.core.errors import DeviceAccessDenied, ConstraintUnsatisfiable
from .frame_source import FrameSource, FrameStream
from .presets import RESOLUTION_PRESETS


def make_texture(resolution: Resolution, seed: int = 0, sigma: float = 3.0) -> NDArray[np.uint8]:
    """
    Smooth grayscale noise texture, (H, W) uint8, full 0-255 range.
    """
    rng = np.random.default_rng(seed)
    noise = rng.random(resolution.shape, dtype=np.float32)
    smooth = cv2.GaussianBlur(noise, (0, 0), sigma)
    smooth -= smooth.min()
    peak = smooth.max()
    if peak > 0:
        smooth /= peak
    return (smooth * 255).astype(np.uint8)


def shift_texture(texture: NDArray[np.uint8], dx: int, dy: int) -> NDArray[np.uint8]:
    """Shift content by (dx, dy) pixels with wrap-around."""
    return np.roll(texture, shift=(int(dy), int(dx)), axis=(0, 1))


class SyntheticStream(FrameStream):
    """Drifting texture stream."""

    def __init__(self, resolution: Resolution, velocity: Tuple[int, int], seed: int):
        self._resolution = resolution
        self.velocity = velocity
        self.seed = seed
        self._texture = make_texture(resolution, seed)
        self.frames_read = 0
        self.closed = False

    @property
    def width(self) -> int:
        return self._resolution.width

    @property
    def height(self) -> int:
        return self._resolution.height

    def read(self) -> Optional[NDArray[np.uint8]]:
        if self.closed:
            return None
        dx = self.velocity[0] * self.frames_read
        dy = self.velocity[1] * self.frames_read
        self.frames_read += 1
        gray = shift_texture(self._texture, dx, dy)
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    def change_size(self, resolution: Resolution):
        """Switch the delivered frame size without renegotiation."""
        self._resolution = resolution
        self._texture = make_texture(resolution, self.seed)

    def close(self) -> None:
        self.closed = True


class SyntheticFrameSource(FrameSource):
    """
    In-memory camera.

    Exact requests succeed only for a supported resolution; ideal requests
    fall back to the largest supported size not exceeding the target.
    """

    def __init__(
        self,
        resolutions: Optional[Iterable[Resolution]] = None,
        velocity: Tuple[int, int] = (1, 0),
        device_count: int = 1,
        deny_access: bool = False,
        report_capabilities: bool = True,
        seed: int = 0,
    ):
        self.resolutions: List[Resolution] = sorted(
            resolutions if resolutions is not None else RESOLUTION_PRESETS.values(),
            key=lambda r: r.width * r.height,
        )
        self.velocity = velocity
        self.device_count = device_count
        self.deny_access = deny_access
        self.report_capabilities = report_capabilities
        self.seed = seed
        self.open_calls: List[Tuple[Any, ResolutionConstraints]] = []
        self.streams: List[SyntheticStream] = []

    def enumerate_devices(self) -> List[DeviceInfo]:
        return [
            DeviceInfo(device_id=i, label=f"Synthetic {i + 1}")
            for i in range(self.device_count)
        ]

    def capabilities(self, device_id: Any) -> Optional[DeviceCapabilities]:
        if not self.report_capabilities or not self.resolutions:
            return None
        return DeviceCapabilities(
            max_width=max(r.width for r in self.resolutions),
            max_height=max(r.height for r in self.resolutions),
        )

    def open(self, device_id: Any, constraints: ResolutionConstraints) -> FrameStream:
        self.open_calls.append((device_id, constraints))

        if self.deny_access:
            raise DeviceAccessDenied(device_id, "permission denied")
        index = 0 if device_id is None else int(device_id)
        if not 0 <= index < self.device_count:
            raise ConstraintUnsatisfiable(device_id, constraints.width, constraints.height, constraints.exact)

        target = Resolution(constraints.width, constraints.height)
        if constraints.exact:
            if target not in self.resolutions:
                raise ConstraintUnsatisfiable(index, target.width, target.height, exact=True)
            chosen = target
        else:
            chosen = self._closest(target)
            if chosen is None:
                raise ConstraintUnsatisfiable(index, target.width, target.height, exact=False)

        stream = SyntheticStream(chosen, self.velocity, self.seed + index)
        self.streams.append(stream)
        logger.debug(f"Synthetic stream {index} opened at {chosen}")
        return stream

    def _closest(self, target: Resolution) -> Optional[Resolution]:
        fitting = [r for r in self.resolutions if r.width <= target.width and r.height <= target.height]
        if fitting:
            return fitting[-1]
        return self.resolutions[0] if self.resolutions else None
