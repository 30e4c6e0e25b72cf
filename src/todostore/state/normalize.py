"""State normalization.

``normalize`` is the single validation path shared by external loads and
internal mutations. It repairs a candidate state so that:

1. The fallback category exists exactly once (inserted at index 0 if missing)
2. Every todo refers to an existing category (otherwise reassigned to the
   fallback category with a refreshed ``updated_at``)
3. The category filter is ``"all"`` or names an existing category
4. ``ui.editing_todo_id`` defaults to ``None``
5. ``meta.schema_version`` equals SCHEMA_VERSION

The function is pure and idempotent: ``normalize(normalize(s)) == normalize(s)``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from todostore.state.clock import utc_now
from todostore.state.models import (
    ALL_CATEGORIES,
    FALLBACK_CATEGORY_ID,
    SCHEMA_VERSION,
    AppState,
    MetaState,
    make_fallback_category,
)

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


def normalize(state: AppState, now: datetime | None = None) -> AppState:
    """Return a repaired copy of ``state`` satisfying all state invariants.

    Args:
        state: Candidate state (never modified)
        now: Timestamp for repaired records (default: current UTC time)

    Returns:
        New normalized AppState
    """
    if now is None:
        now = utc_now()

    categories = []
    seen_fallback = False
    for category in state.categories:
        if category.id == FALLBACK_CATEGORY_ID:
            if seen_fallback:
                continue
            seen_fallback = True
        categories.append(category)

    if not seen_fallback:
        logger.debug("Fallback category missing, inserting it")
        categories.insert(0, make_fallback_category(now))

    category_ids = {category.id for category in categories}

    todos = tuple(
        todo
        if todo.category_id in category_ids
        else todo.model_copy(update={"category_id": FALLBACK_CATEGORY_ID, "updated_at": now})
        for todo in state.todos
    )

    filter_state = state.filter
    if filter_state.category_id != ALL_CATEGORIES and filter_state.category_id not in category_ids:
        filter_state = filter_state.model_copy(update={"category_id": ALL_CATEGORIES})

    return state.model_copy(
        update={
            "todos": todos,
            "categories": tuple(categories),
            "filter": filter_state,
            "meta": MetaState(schema_version=SCHEMA_VERSION),
        }
    )
