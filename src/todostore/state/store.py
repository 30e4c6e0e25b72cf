"""The todo state store.

TodoStore is the single owner of the present AppState. It exposes:
- Derived read views, recomputed from the present on every read
- Commands, each validating its input and committing a new state

Every command except undo/redo/reset goes through ``_commit``, which
normalizes the candidate, updates history, and publishes the result to the
persistence debouncer and subscribers. Invalid input makes a command a
silent no-op; the store never raises for it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from todostore.ids import generate_id
from todostore.state.clock import SystemTimeProvider
from todostore.state.debounce import DEFAULT_DEBOUNCE_DELAY, PersistenceDebouncer
from todostore.state.history import HISTORY_LIMIT, History
from todostore.state.models import (
    ALL_CATEGORIES,
    FALLBACK_CATEGORY_ID,
    MIN_TITLE_LENGTH,
    AppState,
    Category,
    FilterState,
    FilterStatus,
    Todo,
    TodoCounts,
    create_initial_state,
)
from todostore.state.normalize import normalize
from todostore.state.reorder import ReorderError, reorder_visible

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from todostore.config.schema import Config
    from todostore.persistence.base import PersistenceBackend
    from todostore.state.clock import TimeProvider
    from todostore.state.debounce import Cancellable

    Listener = Callable[[AppState], None]

logger = logging.getLogger(__name__)


class TodoStore:
    """Versioned, undoable store for todos, categories and UI state.

    Lifecycle: construct -> load from backend -> normalize -> ready.
    Call ``close()`` (or use the store as a context manager) to flush the
    last debounced write.

    Args:
        backend: Persistence backend providing load/save/clear
        history_limit: Maximum number of undo steps (default: 50)
        debounce_delay: Quiet period before a write, in seconds (default: 0.3)
        id_factory: Supplier of new unique ids
        time_provider: Clock used for created/updated timestamps
        timer_factory: Timer used by the debouncer (default: threading.Timer)

    Example:
        >>> store = TodoStore(MemoryBackend())
        >>> todo_id = store.add_todo("Buy milk")
        >>> store.toggle_todo(todo_id)
        >>> store.undo()
        >>> store.counts
        TodoCounts(total=1, active=1, completed=0)
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        *,
        history_limit: int = HISTORY_LIMIT,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        id_factory: Callable[[], str] = generate_id,
        time_provider: TimeProvider | None = None,
        timer_factory: Callable[[float, Callable[[], None]], Cancellable] | None = None,
    ) -> None:
        self._backend = backend
        self._id_factory = id_factory
        self._clock = time_provider or SystemTimeProvider()
        self._listeners: list[Listener] = []
        self._owns_backend = False

        stored = backend.load()
        if stored is None:
            initial = create_initial_state(self._now())
        else:
            logger.debug("Restoring persisted state (%d todos)", len(stored.todos))
            initial = stored

        self._history: History[AppState] = History(
            normalize(initial, self._now()), limit=history_limit
        )
        self._debouncer: PersistenceDebouncer[AppState] = PersistenceDebouncer(
            backend.save, delay=debounce_delay, timer_factory=timer_factory
        )

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> TodoStore:
        """Build a store and its backend from configuration.

        The store owns the backend it creates and closes it on ``close()``.
        """
        from todostore.config.schema import BackendType
        from todostore.persistence import MemoryBackend, SQLiteBackend

        persistence = config.persistence
        backend: PersistenceBackend
        if persistence.backend == BackendType.MEMORY:
            backend = MemoryBackend()
        else:
            backend = SQLiteBackend(persistence.get_path(), key=persistence.key)

        store = cls(
            backend,
            history_limit=config.history.limit,
            debounce_delay=persistence.debounce_seconds,
            **kwargs,
        )
        store._owns_backend = True
        return store

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def backend(self) -> PersistenceBackend:
        return self._backend

    def flush(self) -> bool:
        """Write any pending state to the backend now.

        Returns:
            True if a write happened
        """
        return self._debouncer.flush()

    def close(self) -> None:
        """Flush the pending write and release an owned backend.

        A write running on the timer thread finishes before the backend is
        closed.
        """
        self._debouncer.flush()
        if self._owns_backend:
            close = getattr(self._backend, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> TodoStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every change.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._history.present

    @property
    def categories(self) -> tuple[Category, ...]:
        return self.state.categories

    @property
    def filter_state(self) -> FilterState:
        return self.state.filter

    @property
    def category_map(self) -> dict[str, Category]:
        return {category.id: category for category in self.state.categories}

    @property
    def filtered_todos(self) -> tuple[Todo, ...]:
        """Todos matching the status, category and search filters, in order."""
        state = self.state
        status = state.filter.status
        category_id = state.filter.category_id
        search = state.filter.search.strip().lower()

        def matches(todo: Todo) -> bool:
            if status == FilterStatus.ACTIVE:
                matches_status = not todo.completed
            elif status == FilterStatus.COMPLETED:
                matches_status = todo.completed
            else:
                matches_status = True
            matches_category = category_id == ALL_CATEGORIES or todo.category_id == category_id
            matches_search = not search or search in todo.title.lower()
            return matches_status and matches_category and matches_search

        return tuple(todo for todo in state.todos if matches(todo))

    @property
    def counts(self) -> TodoCounts:
        total = 0
        completed = 0
        for todo in self.state.todos:
            total += 1
            if todo.completed:
                completed += 1
        return TodoCounts(total=total, active=total - completed, completed=completed)

    @property
    def active_category_name(self) -> str:
        category_id = self.state.filter.category_id
        if category_id == ALL_CATEGORIES:
            return "All categories"
        category = self.category_map.get(category_id)
        return category.name if category else "Unknown category"

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def undo_depth(self) -> int:
        """Number of states that can be restored by undo."""
        return len(self._history.past)

    @property
    def redo_depth(self) -> int:
        """Number of states that can be restored by redo."""
        return len(self._history.future)

    # -------------------------------------------------------------------------
    # Todo commands
    # -------------------------------------------------------------------------

    def add_todo(self, title: str, category_id: str = FALLBACK_CATEGORY_ID) -> str | None:
        """Prepend a new todo.

        Args:
            title: Todo title; trimmed, must be at least 3 characters
            category_id: Owning category (unknown ids fall back to the
                         fallback category)

        Returns:
            Id of the new todo, or None if the title was rejected
        """
        trimmed = title.strip()
        if len(trimmed) < MIN_TITLE_LENGTH:
            logger.debug("Rejected add_todo: title shorter than %d", MIN_TITLE_LENGTH)
            return None

        now = self._now()
        todo = Todo(
            id=self._id_factory(),
            title=trimmed,
            completed=False,
            category_id=category_id,
            created_at=now,
            updated_at=now,
        )
        state = self.state
        self._commit(state.model_copy(update={"todos": (todo, *state.todos)}))
        return todo.id

    def edit_todo_title(self, todo_id: str, title: str) -> None:
        """Rename a todo and leave edit mode."""
        trimmed = title.strip()
        if len(trimmed) < MIN_TITLE_LENGTH:
            logger.debug("Rejected edit_todo_title: title shorter than %d", MIN_TITLE_LENGTH)
            return
        if self.state.find_todo(todo_id) is None:
            logger.debug("Rejected edit_todo_title: unknown todo %s", todo_id)
            return

        state = self._update_todo(todo_id, title=trimmed)
        ui = state.ui.model_copy(update={"editing_todo_id": None})
        self._commit(state.model_copy(update={"ui": ui}))

    def toggle_todo(self, todo_id: str) -> None:
        todo = self.state.find_todo(todo_id)
        if todo is None:
            logger.debug("Rejected toggle_todo: unknown todo %s", todo_id)
            return
        self._commit(self._update_todo(todo_id, completed=not todo.completed))

    def assign_category(self, todo_id: str, category_id: str) -> None:
        if self.state.find_todo(todo_id) is None:
            logger.debug("Rejected assign_category: unknown todo %s", todo_id)
            return
        self._commit(self._update_todo(todo_id, category_id=category_id))

    def delete_todo(self, todo_id: str) -> None:
        """Remove a todo and leave edit mode."""
        state = self.state
        if state.find_todo(todo_id) is None:
            logger.debug("Rejected delete_todo: unknown todo %s", todo_id)
            return
        self._commit(
            state.model_copy(
                update={
                    "todos": tuple(todo for todo in state.todos if todo.id != todo_id),
                    "ui": state.ui.model_copy(update={"editing_todo_id": None}),
                }
            )
        )

    def reorder_todos(
        self, visible_ids: Sequence[str], previous_index: int, current_index: int
    ) -> None:
        """Move a todo within the visible list, keeping hidden todos in place.

        Args:
            visible_ids: Ids of the visible todos before the move, in display order
            previous_index: Index of the dragged todo within ``visible_ids``
            current_index: Drop index within ``visible_ids``
        """
        if previous_index == current_index:
            return
        state = self.state
        try:
            todos = reorder_visible(state.todos, visible_ids, previous_index, current_index)
        except ReorderError as e:
            logger.debug("Rejected reorder_todos: %s", e)
            return
        self._commit(state.model_copy(update={"todos": todos}))

    # -------------------------------------------------------------------------
    # Category commands
    # -------------------------------------------------------------------------

    def add_category(self, name: str) -> str | None:
        """Append a new category.

        Returns:
            Id of the new category, or None if the name was blank
        """
        trimmed = name.strip()
        if not trimmed:
            logger.debug("Rejected add_category: blank name")
            return None

        now = self._now()
        category = Category(id=self._id_factory(), name=trimmed, created_at=now, updated_at=now)
        state = self.state
        self._commit(state.model_copy(update={"categories": (*state.categories, category)}))
        return category.id

    def rename_category(self, category_id: str, name: str) -> None:
        trimmed = name.strip()
        state = self.state
        if not trimmed or not state.has_category(category_id):
            logger.debug("Rejected rename_category: blank name or unknown category %s", category_id)
            return

        now = self._now()
        categories = tuple(
            category.model_copy(update={"name": trimmed, "updated_at": now})
            if category.id == category_id
            else category
            for category in state.categories
        )
        self._commit(state.model_copy(update={"categories": categories}))

    def delete_category(self, category_id: str) -> None:
        """Delete a category, moving its todos to the fallback category.

        The fallback category can never be deleted. An active filter on the
        deleted category resets to all categories.
        """
        state = self.state
        if category_id == FALLBACK_CATEGORY_ID:
            logger.debug("Rejected delete_category: fallback category is permanent")
            return
        if not state.has_category(category_id):
            logger.debug("Rejected delete_category: unknown category %s", category_id)
            return

        now = self._now()
        todos = tuple(
            todo.model_copy(update={"category_id": FALLBACK_CATEGORY_ID, "updated_at": now})
            if todo.category_id == category_id
            else todo
            for todo in state.todos
        )
        filter_state = state.filter
        if filter_state.category_id == category_id:
            filter_state = filter_state.model_copy(update={"category_id": ALL_CATEGORIES})

        self._commit(
            state.model_copy(
                update={
                    "categories": tuple(c for c in state.categories if c.id != category_id),
                    "todos": todos,
                    "filter": filter_state,
                }
            )
        )

    # -------------------------------------------------------------------------
    # UI-only commands (never archived in history)
    # -------------------------------------------------------------------------

    def set_filter_status(self, status: FilterStatus | str) -> None:
        try:
            status = FilterStatus(status)
        except ValueError:
            logger.debug("Rejected set_filter_status: unknown status %r", status)
            return
        self._commit_filter(status=status)

    def set_filter_category(self, category_id: str) -> None:
        self._commit_filter(category_id=category_id)

    def set_search(self, search: str) -> None:
        self._commit_filter(search=search)

    def start_editing(self, todo_id: str) -> None:
        if self.state.find_todo(todo_id) is None:
            logger.debug("Rejected start_editing: unknown todo %s", todo_id)
            return
        self._commit_ui(editing_todo_id=todo_id)

    def cancel_editing(self) -> None:
        self._commit_ui(editing_todo_id=None)

    # -------------------------------------------------------------------------
    # History commands
    # -------------------------------------------------------------------------

    def undo(self) -> None:
        if self._history.undo():
            self._publish()

    def redo(self) -> None:
        if self._history.redo():
            self._publish()

    def reset_all(self) -> None:
        """Clear persisted data and history and start from a fresh state.

        Bypasses the debouncer: a pending write is dropped, a write already
        running is waited for, and the backend is cleared synchronously.
        """
        self._debouncer.cancel()
        self._backend.clear()
        self._history.reset(create_initial_state(self._now()))
        logger.info("Store reset to initial state")
        self._notify()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock.now()

    def _update_todo(self, todo_id: str, **changes: Any) -> AppState:
        state = self.state
        now = self._now()
        todos = tuple(
            todo.model_copy(update={**changes, "updated_at": now}) if todo.id == todo_id else todo
            for todo in state.todos
        )
        return state.model_copy(update={"todos": todos})

    def _commit_filter(self, **changes: Any) -> None:
        state = self.state
        self._commit(
            state.model_copy(update={"filter": state.filter.model_copy(update=changes)}),
            record_history=False,
        )

    def _commit_ui(self, **changes: Any) -> None:
        state = self.state
        self._commit(
            state.model_copy(update={"ui": state.ui.model_copy(update=changes)}),
            record_history=False,
        )

    def _commit(self, candidate: AppState, *, record_history: bool = True) -> None:
        self._history.commit(normalize(candidate, self._now()), record=record_history)
        self._publish()

    def _publish(self) -> None:
        self._debouncer.push(self.state)
        self._notify()

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")
