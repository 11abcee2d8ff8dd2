"""
Input controls module.

To add a new control:
1. Create a new file in this directory
2. Implement a class inheriting from BaseControl
3. Register it in CONTROLS dict below
"""
from .base import BaseControl
from .keyboard import KeyboardControl, KEY_BINDINGS
from .actions import ACTIONS, apply_action, next_preset

# Registry of available controls
CONTROLS = {
    "keyboard": KeyboardControl,
}


def get_control(name: str, callback=None) -> BaseControl:
    """Get a control instance by name.

    Raises:
        ValueError: If the control name is not registered
    """
    if name not in CONTROLS:
        available = ", ".join(CONTROLS.keys())
        raise ValueError(f"Unknown control '{name}'. Available: {available}")

    return CONTROLS[name](callback)


__all__ = ['BaseControl', 'KeyboardControl', 'KEY_BINDINGS', 'ACTIONS',
           'apply_action', 'next_preset', 'get_control']
