"""Shared pytest fixtures for todostore tests.

Fixtures cover:
- Temporary config files
- Deterministic time and ids
- A manually driven timer for the persistence debouncer
- Memory and SQLite backends and stores built on them
"""

from __future__ import annotations

import tempfile
from datetime import UTC, datetime
from itertools import count
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import yaml

from todostore.persistence import MemoryBackend, SQLiteBackend
from todostore.state import (
    FALLBACK_CATEGORY_ID,
    AppState,
    Category,
    FilterState,
    FixedTimeProvider,
    Todo,
    TodoStore,
    create_initial_state,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# ============================================================================
# Time and Id Fixtures
# ============================================================================


@pytest.fixture
def frozen_time() -> datetime:
    """The instant every deterministic test runs at.

    Matches @freeze_time("2026-01-10T15:30:00Z") for tests that exercise
    the system clock.
    """
    return datetime(2026, 1, 10, 15, 30, 0, tzinfo=UTC)


@pytest.fixture
def clock(frozen_time: datetime) -> FixedTimeProvider:
    """Return a controllable clock starting at frozen_time."""
    return FixedTimeProvider(frozen_time)


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Return a factory producing ids 'id-1', 'id-2', ..."""
    counter = count(1)
    return lambda: f"id-{next(counter)}"


# ============================================================================
# Debouncer Timer Fixtures
# ============================================================================


class ManualTimer:
    """Timer stand-in that only fires when the test tells it to."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()


class ManualTimerFactory:
    """Records every timer the debouncer creates."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self) -> None:
        """Let the quiet period elapse for every live timer."""
        for timer in list(self.timers):
            timer.fire()


@pytest.fixture
def timers() -> ManualTimerFactory:
    """Return a manual timer factory for the debouncer."""
    return ManualTimerFactory()


# ============================================================================
# State Fixtures
# ============================================================================


@pytest.fixture
def make_todo(frozen_time: datetime) -> Callable[..., Todo]:
    """Factory fixture building todos with sensible defaults."""

    def _make(todo_id: str, title: str | None = None, **overrides: Any) -> Todo:
        fields: dict[str, Any] = {
            "id": todo_id,
            "title": title or f"Todo {todo_id}",
            "completed": False,
            "category_id": FALLBACK_CATEGORY_ID,
            "created_at": frozen_time,
            "updated_at": frozen_time,
        }
        fields.update(overrides)
        return Todo(**fields)

    return _make


@pytest.fixture
def make_category(frozen_time: datetime) -> Callable[[str, str], Category]:
    """Factory fixture building categories."""

    def _make(category_id: str, name: str) -> Category:
        return Category(id=category_id, name=name, created_at=frozen_time, updated_at=frozen_time)

    return _make


@pytest.fixture
def initial_state(frozen_time: datetime) -> AppState:
    """Return the state of a fresh installation."""
    return create_initial_state(frozen_time)


@pytest.fixture
def populated_state(
    initial_state: AppState,
    make_todo: Callable[..., Todo],
    make_category: Callable[[str, str], Category],
) -> AppState:
    """Return a state with two categories and five todos."""
    work = make_category("work", "Work")
    return initial_state.model_copy(
        update={
            "categories": (*initial_state.categories, work),
            "todos": (
                make_todo("a", "Write report", category_id="work"),
                make_todo("b", "Buy milk", completed=True),
                make_todo("c", "Review pull request", category_id="work"),
                make_todo("d", "Call plumber", completed=True),
                make_todo("e", "Plan sprint", category_id="work"),
            ),
            "filter": FilterState(),
        }
    )


# ============================================================================
# Backend and Store Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Yield a scratch directory removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def test_db_path(temp_dir: Path) -> Path:
    """Database file inside temp_dir (not yet created)."""
    return temp_dir / "test_state.db"


@pytest.fixture
def sqlite_backend(test_db_path: Path) -> Generator[SQLiteBackend, None, None]:
    """Create a SQLiteBackend for testing.

    Yields:
        Initialized backend (closed after test)
    """
    backend = SQLiteBackend(test_db_path)
    yield backend
    backend.close()


@pytest.fixture
def make_store(
    memory_backend: MemoryBackend,
    clock: FixedTimeProvider,
    id_factory: Callable[[], str],
    timers: ManualTimerFactory,
) -> Callable[..., TodoStore]:
    """Factory fixture building deterministic stores.

    Defaults to the shared memory backend, fixed clock, sequential ids and
    manual timers; any of them can be overridden.
    """

    def _make(backend: Any = None, **kwargs: Any) -> TodoStore:
        kwargs.setdefault("time_provider", clock)
        kwargs.setdefault("id_factory", id_factory)
        kwargs.setdefault("timer_factory", timers)
        return TodoStore(backend if backend is not None else memory_backend, **kwargs)

    return _make


@pytest.fixture
def store(make_store: Callable[..., TodoStore]) -> TodoStore:
    """Return a store over an empty memory backend."""
    return make_store()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def minimal_config() -> dict[str, Any]:
    """Smallest config that validates."""
    return {"version": 1}


@pytest.fixture
def sqlite_config(temp_dir: Path) -> dict[str, Any]:
    """Return a configuration storing state in the temp directory."""
    return {
        "version": 1,
        "history": {"limit": 20},
        "persistence": {
            "backend": "sqlite",
            "path": str(temp_dir / "cli_state.db"),
            "debounce_ms": 300,
        },
        "logging": {"json": False},
    }


@pytest.fixture
def write_config(temp_dir: Path) -> Callable[..., Path]:
    """Factory fixture dumping a config mapping as YAML into temp_dir."""

    def _write(config: dict[str, Any], filename: str = "config.yaml") -> Path:
        path = temp_dir / filename
        with path.open("w") as f:
            yaml.safe_dump(config, f)
        return path

    return _write
