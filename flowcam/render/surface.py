"""
Drawing surfaces.

To add a new surface:
1. Inherit from DrawingSurface
2. Implement draw_frame(), stroke_line() and snapshot()
3. Optionally override present() to show the result somewhere
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple
import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger


ColorBGR = Tuple[int, int, int]


def parse_color(color: str) -> ColorBGR:
    """
    Parse a CSS-style hex colour into an OpenCV BGR tuple.

    Accepts '#rrggbb', '#rgb' (leading '#' optional, repeated '#' tolerated).

    Raises:
        ValueError: If the string is not a hex colour
    """
    text = str(color).strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid colour {color!r}")
    try:
        r, g, b = (int(text[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError as e:
        raise ValueError(f"Invalid colour {color!r}") from e
    return (b, g, r)


class DrawingSurface(ABC):
    """Abstract target the renderer draws onto."""

    @abstractmethod
    def draw_frame(self, frame: NDArray[np.uint8], width: int, height: int) -> None:
        """Draw an RGBA frame at (0, 0) sized width x height."""
        pass

    @abstractmethod
    def stroke_line(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        color: str,
        width: int = 2,
    ) -> None:
        """Stroke a line segment."""
        pass

    @abstractmethod
    def snapshot(self) -> Optional[NDArray[np.uint8]]:
        """Return a copy of what has been drawn (BGR), or None if empty."""
        pass

    def present(self) -> None:
        """Show the drawn output. Default: nothing to show."""
        pass

    def close(self) -> None:
        pass


class CanvasSurface(DrawingSurface):
    """
    Off-screen BGR canvas backed by a numpy array.

    Colour strings are parsed once and cached.
    """

    def __init__(self):
        self._canvas: Optional[NDArray[np.uint8]] = None
        self._color_cache: dict[str, ColorBGR] = {}

    def draw_frame(self, frame: NDArray[np.uint8], width: int, height: int) -> None:
        if frame.ndim == 3 and frame.shape[2] == 4:
            bgr = cv2.cvtColor(frame, cv2.COLOR_RGBA2BGR)
        elif frame.ndim == 2:
            bgr = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        else:
            bgr = frame.copy()

        if bgr.shape[1] != width or bgr.shape[0] != height:
            bgr = cv2.resize(bgr, (int(width), int(height)), interpolation=cv2.INTER_LINEAR)
        self._canvas = bgr

    def stroke_line(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        color: str,
        width: int = 2,
    ) -> None:
        if self._canvas is None:
            return
        bgr = self._color_cache.get(color)
        if bgr is None:
            bgr = parse_color(color)
            self._color_cache[color] = bgr
        cv2.line(
            self._canvas,
            (int(round(x0)), int(round(y0))),
            (int(round(x1)), int(round(y1))),
            bgr,
            int(width),
            cv2.LINE_AA,
        )

    def snapshot(self) -> Optional[NDArray[np.uint8]]:
        if self._canvas is None:
            return None
        return self._canvas.copy()


class WindowSurface(CanvasSurface):
    """
    Canvas shown in an OpenCV window.

    Uses cv2.imshow() for display and cv2.waitKey() for input.
    Downscales wide frames to fit max_width.
    """

    def __init__(self, title: str = "FlowCam", max_width: int = 1920):
        super().__init__()
        self.window_name = title
        self.max_width = max_width
        self._window_created = False

    def present(self) -> None:
        if self._canvas is None:
            return
        if not self._window_created:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            self._window_created = True

        display_frame = self._canvas
        h, w = display_frame.shape[:2]
        if w > self.max_width:
            scale = self.max_width / w
            display_frame = cv2.resize(
                display_frame, None,
                fx=scale, fy=scale,
                interpolation=cv2.INTER_AREA
            )
        cv2.imshow(self.window_name, display_frame)

    def poll_key(self) -> Optional[int]:
        """
        Poll for keyboard input.

        Returns:
            Key code (0-255) or None if no key pressed
        """
        key = cv2.waitKey(1) & 0xFF
        if key == 255:
            return None
        return key

    def close(self) -> None:
        if self._window_created:
            cv2.destroyWindow(self.window_name)
            self._window_created = False
            logger.debug("Display window closed")
