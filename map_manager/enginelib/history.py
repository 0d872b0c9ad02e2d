"""Bounded undo/redo history over immutable snapshots."""
from __future__ import annotations

from typing import Generic, List, TypeVar

T = TypeVar("T")


class History(Generic[T]):
    """Keep a linear sequence of snapshots with a movable cursor.

    Values are stored as given; callers are expected to hand in immutable
    snapshots (tuples of frozen dataclasses) so an entry can never change
    behind the cursor's back.
    """

    def __init__(self, initial: T, max_history: int = 50):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self._history: List[T] = [initial]
        self._index = 0

    def __len__(self) -> int:
        return len(self._history)

    @property
    def state(self) -> T:
        return self._history[self._index]

    @property
    def index(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._history) - 1

    def set_state(self, new_state: T) -> None:
        del self._history[self._index + 1:]
        self._history.append(new_state)
        self._index += 1
        if len(self._history) > self.max_history:
            del self._history[0]
            self._index -= 1

    def undo(self) -> None:
        if self._index > 0:
            self._index -= 1

    def redo(self) -> None:
        if self._index < len(self._history) - 1:
            self._index += 1

    def clear_history(self) -> None:
        self._history = [self.state]
        self._index = 0
