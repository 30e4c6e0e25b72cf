"""Debounced write-back of state snapshots.

Every new present value is pushed here. Bursts are coalesced: each push
cancels the pending timer and starts a new one, so only the most recent
snapshot is written once the quiet period has elapsed. The snapshot is
captured at push time, not when the timer fires.

Writes are fire-and-forget and never retried. A failing ``save`` raises out
of the timer thread (or out of ``flush()`` when called directly). Only one
write runs at a time, and ``flush()`` and ``cancel()`` wait for a write in
progress.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Quiet period before a write, in seconds
DEFAULT_DEBOUNCE_DELAY = 0.3


class Cancellable(Protocol):
    """A started, cancellable timer (``threading.Timer`` satisfies this)."""

    def start(self) -> None: ...

    def cancel(self) -> None: ...


class PersistenceDebouncer(Generic[T]):
    """Coalesce snapshot writes to at most one per quiet period.

    Args:
        save: Callback receiving the snapshot to persist
        delay: Quiet period in seconds (default: 0.3)
        timer_factory: Builds a timer from ``(delay, callback)``;
                       defaults to ``threading.Timer``

    Example:
        >>> debouncer = PersistenceDebouncer(backend.save, delay=0.3)
        >>> debouncer.push(state_a)
        >>> debouncer.push(state_b)  # state_a is never written
        >>> debouncer.flush()        # writes state_b now
    """

    def __init__(
        self,
        save: Callable[[T], None],
        delay: float = DEFAULT_DEBOUNCE_DELAY,
        timer_factory: Callable[[float, Callable[[], None]], Cancellable] | None = None,
    ) -> None:
        if delay < 0:
            msg = f"Debounce delay must not be negative, got {delay}"
            raise ValueError(msg)
        self._save = save
        self.delay = delay
        self._timer_factory = timer_factory or _daemon_timer
        self._lock = threading.Lock()
        # Held for the whole of a write; ordered before self._lock
        self._write_lock = threading.Lock()
        self._timer: Cancellable | None = None
        self._pending: T | None = None
        self._generation = 0

    @property
    def pending(self) -> T | None:
        """Snapshot waiting to be written, or None."""
        with self._lock:
            return self._pending

    def push(self, snapshot: T) -> None:
        """Schedule ``snapshot`` to be written after the quiet period.

        Any earlier pending snapshot is superseded and will not be written.
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._pending = snapshot
            self._timer = self._timer_factory(self.delay, lambda: self._fire(generation))
            self._timer.start()

    def flush(self) -> bool:
        """Write the pending snapshot immediately.

        Waits for a write already running on the timer thread, so when this
        returns no earlier snapshot can still land on the backend.

        Returns:
            True if a snapshot was written, False if nothing was pending
        """
        with self._write_lock:
            with self._lock:
                snapshot = self._take_pending()
            if snapshot is None:
                return False
            self._write(snapshot)
            return True

    def cancel(self) -> None:
        """Drop the pending snapshot without writing it.

        Waits for a write already running on the timer thread to finish.
        """
        with self._write_lock, self._lock:
            if self._take_pending() is not None:
                logger.debug("Cancelled pending state write")

    def _fire(self, generation: int) -> None:
        with self._write_lock:
            with self._lock:
                # A push, flush or cancel after this timer was scheduled supersedes it
                if generation != self._generation:
                    return
                snapshot = self._take_pending()
            if snapshot is not None:
                self._write(snapshot)

    def _take_pending(self) -> T | None:
        # Caller holds self._lock
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        snapshot = self._pending
        self._pending = None
        self._generation += 1
        return snapshot

    def _write(self, snapshot: T) -> None:
        logger.debug("Writing debounced state snapshot")
        self._save(snapshot)


def _daemon_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer
