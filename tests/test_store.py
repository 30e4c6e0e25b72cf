"""Tests for TodoStore commands, derived views, history and persistence."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

import pytest
from freezegun import freeze_time

from todostore.config import Config
from todostore.persistence import MemoryBackend, encode_state
from todostore.state import (
    ALL_CATEGORIES,
    FALLBACK_CATEGORY_ID,
    SCHEMA_VERSION,
    AppState,
    FilterState,
    FilterStatus,
    MetaState,
    TodoCounts,
    TodoStore,
)

if TYPE_CHECKING:
    from datetime import datetime


@pytest.fixture
def populated_store(make_store, populated_state: AppState) -> TodoStore:
    return make_store(MemoryBackend(encode_state(populated_state)))


def ids(todos) -> list[str]:
    return [todo.id for todo in todos]


def test_basic_scenario(store: TodoStore) -> None:
    todo_id = store.add_todo("Buy milk", FALLBACK_CATEGORY_ID)

    visible = store.filtered_todos
    assert len(visible) == 1
    assert visible[0].id == todo_id
    assert visible[0].completed is False
    assert visible[0].category_id == FALLBACK_CATEGORY_ID

    assert store.add_todo("x", FALLBACK_CATEGORY_ID) is None
    assert len(store.filtered_todos) == 1

    store.toggle_todo(todo_id)
    assert store.state.find_todo(todo_id).completed is True
    store.undo()
    assert store.state.find_todo(todo_id).completed is False

    category_count = len(store.categories)
    store.delete_category(FALLBACK_CATEGORY_ID)
    assert len(store.categories) == category_count
    assert store.state.has_category(FALLBACK_CATEGORY_ID)


class TestConstruction:
    def test_empty_backend_gives_initial_state(self, store: TodoStore) -> None:
        assert store.state.todos == ()
        assert [c.id for c in store.categories] == [FALLBACK_CATEGORY_ID]
        assert store.filter_state == FilterState()
        assert store.state.meta.schema_version == SCHEMA_VERSION
        assert not store.can_undo
        assert not store.can_redo

    def test_loads_persisted_state(self, populated_store: TodoStore) -> None:
        assert ids(populated_store.state.todos) == list("abcde")
        assert [c.id for c in populated_store.categories] == [FALLBACK_CATEGORY_ID, "work"]

    def test_repairs_persisted_state(
        self, make_store, frozen_time: datetime, make_todo, make_category
    ) -> None:
        stale = AppState(
            todos=(make_todo("a", category_id="gone"),),
            categories=(make_category("work", "Work"),),
            filter=FilterState(category_id="gone"),
            meta=MetaState(schema_version=0),
        )
        # Written by an older version: no schema stamp applied
        store = make_store(MemoryBackend(stale.model_dump_json(by_alias=True)))

        assert [c.id for c in store.categories] == [FALLBACK_CATEGORY_ID, "work"]
        assert store.state.todos[0].category_id == FALLBACK_CATEGORY_ID
        assert store.filter_state.category_id == ALL_CATEGORIES
        assert store.state.meta.schema_version == SCHEMA_VERSION

    def test_malformed_payload_starts_fresh(self, make_store) -> None:
        store = make_store(MemoryBackend('{"todos": "not a list"}'))

        assert store.state.todos == ()
        assert [c.id for c in store.categories] == [FALLBACK_CATEGORY_ID]

    def test_construction_does_not_schedule_a_write(self, populated_store, timers) -> None:
        assert timers.timers == []

    @freeze_time("2026-01-10T15:30:00Z")
    def test_system_clock_is_used_by_default(self, frozen_time: datetime, timers) -> None:
        store = TodoStore(MemoryBackend(), timer_factory=timers)

        todo_id = store.add_todo("Water plants")

        todo = store.state.find_todo(todo_id)
        assert todo.created_at == frozen_time
        assert todo.updated_at == frozen_time


class TestTodoCommands:
    def test_add_prepends_trimmed_title(self, store: TodoStore, frozen_time: datetime) -> None:
        store.add_todo("First")
        second = store.add_todo("   Second todo  ")

        assert ids(store.state.todos) == [second, "id-1"]
        todo = store.state.todos[0]
        assert todo.title == "Second todo"
        assert todo.created_at == frozen_time

    @pytest.mark.parametrize("title", ["", "ab", "  ab  ", "   "])
    def test_add_rejects_short_titles(self, store: TodoStore, title: str) -> None:
        assert store.add_todo(title) is None
        assert store.state.todos == ()
        assert not store.can_undo

    def test_add_with_unknown_category_falls_back(self, store: TodoStore) -> None:
        todo_id = store.add_todo("Orphan todo", "missing")

        assert store.state.find_todo(todo_id).category_id == FALLBACK_CATEGORY_ID

    def test_edit_title_leaves_edit_mode(self, populated_store: TodoStore, clock) -> None:
        populated_store.start_editing("a")
        clock.advance(60)

        populated_store.edit_todo_title("a", "  Write final report ")

        todo = populated_store.state.find_todo("a")
        assert todo.title == "Write final report"
        assert todo.updated_at == clock.now()
        assert populated_store.state.ui.editing_todo_id is None

    def test_edit_rejects_short_title(self, populated_store: TodoStore) -> None:
        populated_store.edit_todo_title("a", "no")

        assert populated_store.state.find_todo("a").title == "Write report"
        assert not populated_store.can_undo

    def test_toggle_flips_completion(self, populated_store: TodoStore) -> None:
        populated_store.toggle_todo("b")

        assert populated_store.state.find_todo("b").completed is False
        assert populated_store.counts == TodoCounts(total=5, active=4, completed=1)

    def test_assign_category(self, populated_store: TodoStore) -> None:
        populated_store.assign_category("b", "work")

        assert populated_store.state.find_todo("b").category_id == "work"

    def test_delete_clears_edit_mode(self, populated_store: TodoStore) -> None:
        populated_store.start_editing("c")

        populated_store.delete_todo("c")

        assert ids(populated_store.state.todos) == ["a", "b", "d", "e"]
        assert populated_store.state.ui.editing_todo_id is None

    @pytest.mark.parametrize(
        "command",
        [
            lambda s: s.toggle_todo("nope"),
            lambda s: s.edit_todo_title("nope", "Valid title"),
            lambda s: s.assign_category("nope", "work"),
            lambda s: s.delete_todo("nope"),
            lambda s: s.start_editing("nope"),
        ],
    )
    def test_unknown_todo_is_noop(self, populated_store: TodoStore, command) -> None:
        before = populated_store.state

        command(populated_store)

        assert populated_store.state == before
        assert not populated_store.can_undo


class TestReorder:
    def test_reorder_under_filter_keeps_hidden_todos(self, populated_store: TodoStore) -> None:
        populated_store.set_filter_status(FilterStatus.ACTIVE)
        visible = ids(populated_store.filtered_todos)
        assert visible == ["a", "c", "e"]

        populated_store.reorder_todos(visible, 0, 2)

        assert ids(populated_store.state.todos) == ["c", "b", "e", "d", "a"]
        assert ids(populated_store.filtered_todos) == ["c", "e", "a"]
        assert populated_store.can_undo

    def test_same_index_is_noop(self, populated_store: TodoStore) -> None:
        populated_store.reorder_todos(list("abcde"), 2, 2)

        assert not populated_store.can_undo

    def test_invalid_input_is_noop(self, populated_store: TodoStore) -> None:
        populated_store.reorder_todos(["a", "zzz"], 0, 1)
        populated_store.reorder_todos(["a", "c"], 0, 5)

        assert ids(populated_store.state.todos) == list("abcde")
        assert not populated_store.can_undo


class TestCategoryCommands:
    def test_add_category_appends(self, store: TodoStore) -> None:
        category_id = store.add_category("  Home ")

        assert category_id == "id-1"
        assert store.categories[-1].name == "Home"
        assert store.category_map[category_id].name == "Home"

    def test_add_category_rejects_blank(self, store: TodoStore) -> None:
        assert store.add_category("   ") is None
        assert len(store.categories) == 1

    def test_rename_category(self, populated_store: TodoStore, clock) -> None:
        clock.advance(5)

        populated_store.rename_category("work", "Office")

        work = populated_store.category_map["work"]
        assert work.name == "Office"
        assert work.updated_at == clock.now()

    def test_rename_blank_or_unknown_is_noop(self, populated_store: TodoStore) -> None:
        populated_store.rename_category("work", " ")
        populated_store.rename_category("missing", "Name")

        assert populated_store.category_map["work"].name == "Work"
        assert not populated_store.can_undo

    def test_delete_moves_todos_to_fallback(self, populated_store: TodoStore) -> None:
        populated_store.set_filter_category("work")

        populated_store.delete_category("work")

        assert [c.id for c in populated_store.categories] == [FALLBACK_CATEGORY_ID]
        assert {t.category_id for t in populated_store.state.todos} == {FALLBACK_CATEGORY_ID}
        assert populated_store.filter_state.category_id == ALL_CATEGORIES

    def test_fallback_survives_any_deletion(self, populated_store: TodoStore) -> None:
        for category in list(populated_store.categories):
            populated_store.delete_category(category.id)

        assert [c.id for c in populated_store.categories] == [FALLBACK_CATEGORY_ID]


class TestViews:
    def test_counts(self, populated_store: TodoStore) -> None:
        assert populated_store.counts == TodoCounts(total=5, active=3, completed=2)

    def test_status_filter(self, populated_store: TodoStore) -> None:
        populated_store.set_filter_status("completed")
        assert ids(populated_store.filtered_todos) == ["b", "d"]

        populated_store.set_filter_status(FilterStatus.ALL)
        assert ids(populated_store.filtered_todos) == list("abcde")

    def test_invalid_status_is_noop(self, populated_store: TodoStore) -> None:
        populated_store.set_filter_status("someday")

        assert populated_store.filter_state.status == FilterStatus.ALL

    def test_filters_combine(self, populated_store: TodoStore) -> None:
        populated_store.set_filter_status(FilterStatus.ACTIVE)
        populated_store.set_filter_category("work")
        populated_store.set_search("re")

        assert ids(populated_store.filtered_todos) == ["a", "c"]

        populated_store.set_search("  REPORT ")
        assert ids(populated_store.filtered_todos) == ["a"]

    def test_unknown_filter_category_resets_to_all(self, populated_store: TodoStore) -> None:
        populated_store.set_filter_category("missing")

        assert populated_store.filter_state.category_id == ALL_CATEGORIES

    def test_active_category_name(self, populated_store: TodoStore) -> None:
        assert populated_store.active_category_name == "All categories"

        populated_store.set_filter_category("work")

        assert populated_store.active_category_name == "Work"


class TestHistory:
    @pytest.mark.parametrize(
        "command",
        [
            lambda s: s.add_todo("New todo"),
            lambda s: s.edit_todo_title("a", "Changed title"),
            lambda s: s.toggle_todo("a"),
            lambda s: s.assign_category("a", FALLBACK_CATEGORY_ID),
            lambda s: s.delete_todo("a"),
            lambda s: s.reorder_todos(list("abcde"), 0, 4),
            lambda s: s.add_category("Home"),
            lambda s: s.rename_category("work", "Office"),
            lambda s: s.delete_category("work"),
        ],
    )
    def test_undo_redo_round_trip(self, populated_store: TodoStore, command) -> None:
        before = populated_store.state
        command(populated_store)
        after = populated_store.state
        assert after != before

        populated_store.undo()
        assert populated_store.state == before

        populated_store.redo()
        assert populated_store.state == after

    def test_undo_depth_is_capped(self, store: TodoStore) -> None:
        for n in range(60):
            store.add_todo(f"Todo number {n}")

        assert store.undo_depth == 50

        while store.can_undo:
            store.undo()
        # The first ten additions can no longer be undone
        assert store.counts.total == 10

    def test_new_command_clears_redo(self, populated_store: TodoStore) -> None:
        populated_store.toggle_todo("a")
        populated_store.undo()
        assert populated_store.can_redo

        populated_store.toggle_todo("c")

        assert not populated_store.can_redo

    def test_ui_commands_are_transparent(self, populated_store: TodoStore) -> None:
        populated_store.toggle_todo("a")
        populated_store.toggle_todo("a")
        populated_store.undo()
        depths = (populated_store.undo_depth, populated_store.redo_depth)

        populated_store.set_search("report")
        populated_store.set_filter_status(FilterStatus.ACTIVE)
        populated_store.set_filter_category("work")
        populated_store.start_editing("a")
        populated_store.cancel_editing()

        assert (populated_store.undo_depth, populated_store.redo_depth) == depths
        assert populated_store.can_undo
        assert populated_store.can_redo

    def test_undo_redo_on_empty_history_are_noops(self, store: TodoStore, timers) -> None:
        before = store.state

        store.undo()
        store.redo()

        assert store.state == before
        assert timers.timers == []


class TestPersistence:
    def test_burst_of_commands_writes_once(self, store, memory_backend, timers) -> None:
        store.add_todo("First todo")
        store.add_todo("Second todo")
        store.toggle_todo("id-1")

        assert memory_backend.save_count == 0
        assert len(timers.active) == 1
        assert timers.active[0].delay == 0.3

        timers.fire_all()

        assert memory_backend.save_count == 1
        saved = memory_backend.load()
        assert saved == store.state

    def test_snapshot_is_present_at_schedule_time(self, store, memory_backend, timers) -> None:
        store.add_todo("First todo")
        timer = timers.timers[-1]
        scheduled = store.state

        # Callback of the live timer writes the snapshot it was given
        timer.fire()

        assert memory_backend.load() == scheduled

    def test_undo_schedules_a_write(self, store, memory_backend, timers) -> None:
        store.add_todo("Short lived")
        timers.fire_all()

        store.undo()
        timers.fire_all()

        assert memory_backend.save_count == 2
        assert memory_backend.load().todos == ()

    def test_ui_commands_are_persisted(self, populated_store, timers) -> None:
        populated_store.set_search("milk")
        timers.fire_all()

        assert populated_store.backend.load().filter.search == "milk"

    def test_close_flushes_pending_write(self, make_store, memory_backend) -> None:
        with make_store() as store:
            store.add_todo("Flushed on exit")
            assert memory_backend.save_count == 0

        assert memory_backend.save_count == 1
        assert memory_backend.load().todos[0].title == "Flushed on exit"

    def test_reset_all(self, populated_store: TodoStore, timers) -> None:
        backend = populated_store.backend
        populated_store.add_todo("Pending write")

        populated_store.reset_all()
        timers.fire_all()

        assert backend.payload is None
        assert backend.save_count == 0
        assert populated_store.state.todos == ()
        assert [c.id for c in populated_store.categories] == [FALLBACK_CATEGORY_ID]
        assert not populated_store.can_undo
        assert not populated_store.can_redo

    def test_state_survives_reopen(self, make_store, sqlite_backend) -> None:
        store = make_store(sqlite_backend)
        store.add_category("Garden")
        store.add_todo("Mow the lawn", "id-1")
        store.flush()

        reopened = make_store(sqlite_backend)

        assert reopened.state.todos == store.state.todos
        assert reopened.categories == store.categories
        assert not reopened.can_undo


class SlowMemoryBackend(MemoryBackend):
    """Memory backend whose saves take a while to complete."""

    def __init__(self, payload: str | None = None) -> None:
        super().__init__(payload)
        self.save_started = threading.Event()

    def save(self, state: AppState) -> None:
        self.save_started.set()
        time.sleep(0.2)
        super().save(state)


class TestWriteOnTimerThread:
    @pytest.fixture
    def backend(self) -> SlowMemoryBackend:
        return SlowMemoryBackend()

    @pytest.fixture
    def writing_store(self, make_store, backend: SlowMemoryBackend) -> TodoStore:
        """Store whose first debounced save is running when returned."""
        store = make_store(backend, debounce_delay=0.01, timer_factory=None)
        store.add_todo("Being written")
        assert backend.save_started.wait(timeout=5)
        return store

    def test_reset_all_is_not_overwritten(self, writing_store, backend) -> None:
        writing_store.reset_all()
        time.sleep(0.3)

        assert backend.save_count == 1
        assert backend.load() is None
        assert writing_store.state.todos == ()

    def test_close_waits_for_write(self, writing_store, backend) -> None:
        writing_store.close()

        assert backend.save_count == 1
        assert backend.load().todos[0].title == "Being written"


class TestSubscribers:
    def test_listener_receives_every_change(self, store: TodoStore) -> None:
        seen: list[AppState] = []
        store.subscribe(seen.append)

        store.add_todo("Notify me")
        store.set_search("notify")
        store.undo()

        assert len(seen) == 3
        assert seen[-1] == store.state

    def test_unsubscribe(self, store: TodoStore) -> None:
        seen: list[AppState] = []
        unsubscribe = store.subscribe(seen.append)

        unsubscribe()
        store.add_todo("Silent change")

        assert seen == []

    def test_failing_listener_does_not_break_commands(self, store: TodoStore) -> None:
        seen: list[AppState] = []

        def broken(state: AppState) -> None:
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        store.subscribe(seen.append)

        todo_id = store.add_todo("Still added")

        assert store.state.find_todo(todo_id) is not None
        assert len(seen) == 1

    def test_reset_notifies(self, store: TodoStore) -> None:
        seen: list[AppState] = []
        store.subscribe(seen.append)

        store.reset_all()

        assert seen == [store.state]


def test_from_config(timers) -> None:
    config = Config.model_validate(
        {
            "version": 1,
            "history": {"limit": 5},
            "persistence": {"backend": "memory", "debounce_ms": 0},
        }
    )

    store = TodoStore.from_config(config, timer_factory=timers)
    for n in range(7):
        store.add_todo(f"Todo number {n}")

    assert isinstance(store.backend, MemoryBackend)
    assert store.undo_depth == 5
    assert timers.timers[0].delay == 0.0

    store.close()
    assert store.backend.save_count == 1
