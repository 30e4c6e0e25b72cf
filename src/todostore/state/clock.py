"""Time providers for timestamping todos and categories.

The store never calls the system clock directly so that timestamps can be
made deterministic in tests.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for providing current time."""

    def now(self) -> datetime:
        """Get the current UTC time."""
        ...


class SystemTimeProvider:
    """Default time provider using system clock."""

    def now(self) -> datetime:
        """Get current UTC time from system clock."""
        return datetime.now(UTC)


class FixedTimeProvider:
    """Time provider with a fixed time (for testing).

    Example:
        >>> provider = FixedTimeProvider(datetime(2026, 1, 10, 12, 0, 0, tzinfo=UTC))
        >>> provider.now()
        datetime.datetime(2026, 1, 10, 12, 0, tzinfo=datetime.timezone.utc)
    """

    def __init__(self, fixed_time: datetime) -> None:
        self._fixed_time = fixed_time

    def now(self) -> datetime:
        """Return the fixed time."""
        return self._fixed_time

    def advance(self, seconds: float) -> None:
        """Move the fixed time forward."""
        self._fixed_time = self._fixed_time + timedelta(seconds=seconds)


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)
