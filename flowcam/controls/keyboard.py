"""
Keyboard input control.

Handles keyboard input via OpenCV window events.
"""
from typing import Dict, Optional, Callable
from .base import BaseControl

# Key -> action name
KEY_BINDINGS: Dict[str, str] = {
    "q": "quit",
    "c": "capture",
    "m": "toggle_mode",
    "r": "next_preset",
    "n": "next_device",
    "e": "export",
    "s": "screenshot",
    "+": "step_up",
    "=": "step_up",
    "-": "step_down",
    "]": "window_up",
    "[": "window_down",
    ".": "scale_up",
    ",": "scale_down",
}

ESC_KEY = 27


class KeyboardControl(BaseControl):
    """Keyboard input handler.

    Uses OpenCV's waitKey() for input detection.
    Must be polled in the main loop.

    Key bindings:
        q / ESC - quit
        c - capture reference frame
        m - toggle manual / continuous capture
        r - cycle resolution preset
        n - next camera
        e - export flow workbook
        s - save screenshot
        + / - - vector grid step
        ] / [ - flow window size
        . / , - vector scale
    """

    def __init__(
        self,
        callback: Optional[Callable[[str], None]] = None,
        bindings: Optional[Dict[str, str]] = None,
    ):
        super().__init__(callback)
        self.bindings = dict(bindings or KEY_BINDINGS)

    def start(self) -> None:
        """No startup needed for keyboard."""
        pass

    def stop(self) -> None:
        """No cleanup needed for keyboard."""
        pass

    def poll(self, key: Optional[int] = None) -> Optional[str]:
        """Process a key press.

        Args:
            key: Key code from cv2.waitKey(), or None

        Returns:
            Action name, or None for unbound keys
        """
        if key is None:
            return None
        if key == ESC_KEY:
            action = "quit"
        else:
            action = self.bindings.get(chr(key).lower())
        if action is not None:
            self.trigger(action)
        return action
