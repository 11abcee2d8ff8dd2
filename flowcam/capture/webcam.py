"""
Webcam frame source using OpenCV.

Handles:
- Device enumeration by probing indices
- Capability probing (largest size the driver accepts)
- Exact vs. ideal resolution negotiation
"""

from __future__ import annotations

import os
from typing import Any, List, Optional
import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from flowcam.core.contracts import DeviceInfo, DeviceCapabilities, ResolutionConstraints
from flowcam.core.errors import DeviceAccessDenied, ConstraintUnsatisfiable
from .frame_source import FrameSource, FrameStream
from .presets import FALLBACK_MAX_WIDTH, FALLBACK_MAX_HEIGHT


def _open_capture(index: int, backend: Optional[int]) -> cv2.VideoCapture:
    if backend is not None:
        return cv2.VideoCapture(index, backend)
    return cv2.VideoCapture(index)


class WebcamStream(FrameStream):
    """An opened cv2.VideoCapture."""

    def __init__(self, capture: cv2.VideoCapture, device_id: int, width: int, height: int):
        self._capture: Optional[cv2.VideoCapture] = capture
        self.device_id = device_id
        self._width = width
        self._height = height

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def read(self) -> Optional[NDArray[np.uint8]]:
        if self._capture is None:
            return None
        ret, frame = self._capture.read()
        if not ret or frame is None:
            return None
        return frame

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Webcam {self.device_id} released")


class OpenCVFrameSource(FrameSource):
    """
    Local cameras exposed through cv2.VideoCapture.

    OpenCV cannot list devices or query limits, so both are probed:
    indices are opened in turn, and the maximum size is whatever the
    driver negotiates when asked for 4096x2160.
    """

    def __init__(self, max_devices: int = 4, backend: Optional[int] = None, buffer_frames: int = 1):
        """
        Initialize webcam source.

        Args:
            max_devices: Number of device indices to probe
            backend: OpenCV capture backend (None = platform default)
            buffer_frames: Driver-side frame buffer size
        """
        self.max_devices = max_devices
        if backend is None and os.name == 'nt':
            backend = cv2.CAP_DSHOW
        self.backend = backend
        self.buffer_frames = buffer_frames
        self._capabilities: dict[int, Optional[DeviceCapabilities]] = {}

    def enumerate_devices(self) -> List[DeviceInfo]:
        devices = []
        for index in range(self.max_devices):
            cap = _open_capture(index, self.backend)
            try:
                if cap.isOpened():
                    devices.append(DeviceInfo(device_id=index, label=f"Camera {index + 1}"))
            finally:
                cap.release()
        logger.info(f"Video devices: {[d.label for d in devices]}")
        return devices

    def capabilities(self, device_id: Any) -> Optional[DeviceCapabilities]:
        index = 0 if device_id is None else int(device_id)
        if index in self._capabilities:
            return self._capabilities[index]

        caps = None
        cap = _open_capture(index, self.backend)
        try:
            if cap.isOpened():
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, FALLBACK_MAX_WIDTH)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, FALLBACK_MAX_HEIGHT)
                max_w = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
                max_h = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
                if max_w > 0 and max_h > 0:
                    caps = DeviceCapabilities(max_w, max_h)
        finally:
            cap.release()

        if caps is None:
            logger.warning(f"Could not probe capabilities of camera {index}")
        else:
            logger.info(f"Camera {index} max resolution: {caps.max_width}x{caps.max_height}")
        self._capabilities[index] = caps
        return caps

    def open(self, device_id: Any, constraints: ResolutionConstraints) -> FrameStream:
        index = 0 if device_id is None else int(device_id)
        logger.info(
            f"Opening webcam {index} ({'exact' if constraints.exact else 'ideal'} "
            f"{constraints.width}x{constraints.height})"
        )

        cap = _open_capture(index, self.backend)
        if not cap.isOpened():
            cap.release()
            raise DeviceAccessDenied(index, "could not open camera")

        cap.set(cv2.CAP_PROP_BUFFERSIZE, self.buffer_frames)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        cap.set(cv2.CAP_PROP_FPS, constraints.frame_rate)

        # Read actual settings
        actual_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = cap.get(cv2.CAP_PROP_FPS)

        if constraints.exact and (actual_width, actual_height) != (constraints.width, constraints.height):
            cap.release()
            raise ConstraintUnsatisfiable(index, constraints.width, constraints.height, exact=True)

        if actual_width <= 0 or actual_height <= 0:
            cap.release()
            raise ConstraintUnsatisfiable(index, constraints.width, constraints.height, exact=False)

        logger.info(f"Webcam opened: {actual_width}x{actual_height} @ {actual_fps:.0f}fps")
        return WebcamStream(cap, index, actual_width, actual_height)
