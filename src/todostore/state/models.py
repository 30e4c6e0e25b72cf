"""Immutable data models for the todo application state.

This module defines the pieces of ``AppState``, the unit of snapshotting,
persistence and undo/redo:
- Todo / Category: domain entities owned by the state
- FilterState / UiState: projection criteria and transient UI focus
- MetaState: schema version stamp
- AppState: the aggregate
- TodoCounts: derived totals

All models are frozen pydantic models. Field names are snake_case in Python
and camelCase in the persisted payload (``categoryId``, ``createdAt``, ...).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Current schema version - increment when the persisted shape changes
SCHEMA_VERSION = 1

FALLBACK_CATEGORY_ID = "uncategorized"
FALLBACK_CATEGORY_NAME = "Uncategorized"

# Filter value meaning "no category restriction"
ALL_CATEGORIES = "all"

MIN_TITLE_LENGTH = 3


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FilterStatus(str, Enum):
    """Completion status a todo list can be filtered by."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class Todo(_FrozenModel):
    """A single todo item.

    Attributes:
        id: Opaque unique identifier
        title: Trimmed title, at least MIN_TITLE_LENGTH characters
        completed: Whether the todo is done
        category_id: Id of the owning category
        created_at: UTC creation time
        updated_at: UTC time of the last change
    """

    id: str
    title: str
    completed: bool = False
    category_id: str
    created_at: datetime
    updated_at: datetime


class Category(_FrozenModel):
    """A named category todos can be assigned to."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


class FilterState(_FrozenModel):
    """Projection criteria for the visible todo list. Never archived in history."""

    status: FilterStatus = FilterStatus.ALL
    category_id: str = ALL_CATEGORIES
    search: str = ""


class UiState(_FrozenModel):
    """Transient UI focus. Never archived in history."""

    editing_todo_id: str | None = None


class MetaState(_FrozenModel):
    """Schema metadata; a missing block reads as version 0."""

    schema_version: int = 0


class AppState(_FrozenModel):
    """The complete application state.

    Sequences are tuples so that a snapshot held in history can never be
    changed after the fact.
    """

    todos: tuple[Todo, ...] = ()
    categories: tuple[Category, ...] = ()
    filter: FilterState = Field(default_factory=FilterState)
    ui: UiState = Field(default_factory=UiState)
    meta: MetaState = Field(default_factory=MetaState)

    def find_todo(self, todo_id: str) -> Todo | None:
        """Return the todo with the given id, if any."""
        return next((todo for todo in self.todos if todo.id == todo_id), None)

    def has_category(self, category_id: str) -> bool:
        """Check whether a category with the given id exists."""
        return any(category.id == category_id for category in self.categories)


class TodoCounts(_FrozenModel):
    """Totals shown alongside the todo list."""

    total: int
    active: int
    completed: int


def make_fallback_category(now: datetime) -> Category:
    """Build the reserved fallback category."""
    return Category(
        id=FALLBACK_CATEGORY_ID,
        name=FALLBACK_CATEGORY_NAME,
        created_at=now,
        updated_at=now,
    )


def create_initial_state(now: datetime) -> AppState:
    """Build the state of a fresh installation.

    Args:
        now: Timestamp for the fallback category

    Returns:
        State with no todos, only the fallback category and default filters
    """
    return AppState(
        todos=(),
        categories=(make_fallback_category(now),),
        filter=FilterState(),
        ui=UiState(),
        meta=MetaState(schema_version=SCHEMA_VERSION),
    )
