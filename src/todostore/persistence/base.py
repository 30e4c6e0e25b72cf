"""Persistence backend protocol and the in-memory backend."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from todostore.persistence.codec import decode_state, encode_state

if TYPE_CHECKING:
    from todostore.state.models import AppState

logger = logging.getLogger(__name__)


class PersistenceBackend(Protocol):
    """Protocol for key-value blob stores holding one AppState.

    The store calls ``load`` once at construction, ``save`` from the
    debounced flush and ``clear`` on reset. I/O errors propagate to the
    caller; they are never retried.
    """

    def load(self) -> AppState | None:
        """Return the stored state, or None if nothing usable is stored."""
        ...

    def save(self, state: AppState) -> None:
        """Replace the stored state."""
        ...

    def clear(self) -> None:
        """Remove the stored state."""
        ...


class MemoryBackend:
    """Backend keeping the encoded payload in memory.

    Stores the serialized payload rather than the object so that loads go
    through the same decode path as durable backends.

    Attributes:
        save_count: Number of completed saves
    """

    def __init__(self, payload: str | None = None) -> None:
        self.payload = payload
        self.save_count = 0

    def load(self) -> AppState | None:
        return decode_state(self.payload)

    def save(self, state: AppState) -> None:
        self.payload = encode_state(state)
        self.save_count += 1
        logger.debug("Saved state to memory (%d todos)", len(state.todos))

    def clear(self) -> None:
        self.payload = None
