"""State management module for todostore.

This module provides the versioned, undoable state store:
- Immutable state models (todos, categories, filter/UI/meta state)
- Normalization enforcing referential invariants
- Visible-to-full reorder mapping
- Bounded undo/redo history
- Debounced persistence write-back

Usage:
    from todostore.persistence import SQLiteBackend
    from todostore.state import TodoStore

    with TodoStore(SQLiteBackend("state.db")) as store:
        store.add_todo("Buy milk")
        store.undo()
"""

from todostore.state.clock import FixedTimeProvider, SystemTimeProvider, TimeProvider
from todostore.state.debounce import DEFAULT_DEBOUNCE_DELAY, PersistenceDebouncer
from todostore.state.history import HISTORY_LIMIT, History
from todostore.state.models import (
    ALL_CATEGORIES,
    FALLBACK_CATEGORY_ID,
    FALLBACK_CATEGORY_NAME,
    MIN_TITLE_LENGTH,
    SCHEMA_VERSION,
    AppState,
    Category,
    FilterState,
    FilterStatus,
    MetaState,
    Todo,
    TodoCounts,
    UiState,
    create_initial_state,
)
from todostore.state.normalize import normalize
from todostore.state.reorder import ReorderError, move_item, reorder_visible
from todostore.state.store import TodoStore

__all__ = [
    "ALL_CATEGORIES",
    "DEFAULT_DEBOUNCE_DELAY",
    "FALLBACK_CATEGORY_ID",
    "FALLBACK_CATEGORY_NAME",
    "HISTORY_LIMIT",
    "MIN_TITLE_LENGTH",
    "SCHEMA_VERSION",
    "AppState",
    "Category",
    "FilterState",
    "FilterStatus",
    "FixedTimeProvider",
    "History",
    "MetaState",
    "PersistenceDebouncer",
    "ReorderError",
    "SystemTimeProvider",
    "TimeProvider",
    "Todo",
    "TodoCounts",
    "TodoStore",
    "UiState",
    "create_initial_state",
    "move_item",
    "normalize",
    "reorder_visible",
]
