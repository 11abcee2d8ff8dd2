"""
Base class for input controls.

To add a new input control:
1. Create a new file in the controls/ directory
2. Inherit from BaseControl
3. Implement start(), stop(), poll()
4. Register in controls/__init__.py
"""
from abc import ABC, abstractmethod
from typing import Optional, Callable


class BaseControl(ABC):
    """Abstract base class for input controls.

    Controls turn raw user input into action names that the application
    applies to the pipeline (see controls.actions).
    """

    def __init__(self, callback: Optional[Callable[[str], None]] = None):
        """Initialize control with optional callback.

        Args:
            callback: Called with each action name as it is detected
        """
        self.callback = callback

    @abstractmethod
    def start(self) -> None:
        """Start listening for input."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop listening and cleanup."""
        pass

    def poll(self, key: Optional[int] = None) -> Optional[str]:
        """Poll for input.

        Returns:
            Action string or None
        """
        return None

    def trigger(self, action: str) -> None:
        """Forward an action to the callback if set."""
        if self.callback:
            self.callback(action)
