"""
Exclusive single-owner cell.

Replacing the value always releases the previous one first.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar, Callable

T = TypeVar("T")


def _release_value(value) -> None:
    release = getattr(value, "release", None)
    if callable(release):
        release()


class OwnedSlot(Generic[T]):
    """
    Holds at most one owned value.

    Guarantees:
    - replace() releases the old value before storing the new one
    - clear() releases the value and leaves the slot empty
    """

    def __init__(self, releaser: Callable[[T], None] = _release_value):
        self._value: Optional[T] = None
        self._releaser = releaser
        self.release_count = 0

    @property
    def value(self) -> Optional[T]:
        return self._value

    def is_empty(self) -> bool:
        return self._value is None

    def replace(self, new: Optional[T]) -> bool:
        """
        Store a new value, releasing the old one first.

        Returns:
            True if an old value was released
        """
        released = self.clear()
        self._value = new
        return released

    def clear(self) -> bool:
        """Release the held value. Returns True if there was one."""
        old = self._value
        if old is None:
            return False
        self._value = None
        self._releaser(old)
        self.release_count += 1
        return True
