"""Bounded undo/redo history over opaque snapshots.

Three stacks: ``past`` (bounded, oldest evicted first), ``present`` and
``future`` (cleared by every recorded commit).
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Maximum number of archived states kept for undo
HISTORY_LIMIT = 50


class History(Generic[T]):
    """Past/present/future container providing commit, undo and redo.

    Args:
        initial: Initial present value
        limit: Maximum number of entries kept in ``past`` (default: 50)

    Example:
        >>> history = History("a")
        >>> history.commit("b")
        >>> history.undo()
        True
        >>> history.present
        'a'
    """

    def __init__(self, initial: T, limit: int = HISTORY_LIMIT) -> None:
        if limit < 1:
            msg = f"History limit must be positive, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self._present = initial
        self._past: deque[T] = deque(maxlen=limit)
        self._future: deque[T] = deque()

    @property
    def present(self) -> T:
        return self._present

    @property
    def past(self) -> tuple[T, ...]:
        """Archived states, oldest first."""
        return tuple(self._past)

    @property
    def future(self) -> tuple[T, ...]:
        """Undone states, next redo first."""
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    def commit(self, next_value: T, *, record: bool = True) -> None:
        """Replace the present value.

        Args:
            next_value: New present value
            record: If True, archive the current present and clear ``future``.
                    If False, leave ``past`` and ``future`` untouched.
        """
        if record:
            if len(self._past) == self.limit:
                logger.debug("History full, evicting oldest entry")
            # deque(maxlen=limit) drops the oldest entry on overflow
            self._past.append(self._present)
            self._future.clear()
        self._present = next_value

    def undo(self) -> bool:
        """Restore the most recent archived state.

        Returns:
            True if the present changed, False if there was nothing to undo
        """
        if not self._past:
            return False
        previous = self._past.pop()
        self._future.appendleft(self._present)
        self._present = previous
        return True

    def redo(self) -> bool:
        """Re-apply the earliest undone state.

        Returns:
            True if the present changed, False if there was nothing to redo
        """
        if not self._future:
            return False
        following = self._future.popleft()
        self._past.append(self._present)
        self._present = following
        return True

    def reset(self, initial: T) -> None:
        """Drop all history and start over from ``initial``."""
        self._past.clear()
        self._future.clear()
        self._present = initial
