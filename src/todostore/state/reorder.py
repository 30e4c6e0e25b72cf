"""Mapping of visible-list reorders onto the full todo sequence.

The drag layer only knows indices relative to the filtered list it shows.
``reorder_visible`` translates such a move into a new full sequence:

1. Move the id within the visible ids (standard array-move semantics)
2. Collect the full-sequence positions occupied by visible ids, ascending
3. Write the visible todos back into those positions in their new order

Todos outside the visible set never move, and the set of ids is unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

    from todostore.state.models import Todo

T = TypeVar("T")


class ReorderError(ValueError):
    """Raised when a reorder request does not match the current todos."""


def move_item(items: Sequence[T], previous_index: int, current_index: int) -> tuple[T, ...]:
    """Move one element of ``items`` from ``previous_index`` to ``current_index``.

    Args:
        items: Sequence to reorder (never modified)
        previous_index: Current position of the element
        current_index: Target position of the element

    Returns:
        New tuple with the element moved

    Raises:
        ReorderError: If either index is out of range
    """
    size = len(items)
    for index in (previous_index, current_index):
        if not 0 <= index < size:
            msg = f"Index {index} out of range for {size} item(s)"
            raise ReorderError(msg)

    moved = list(items)
    if previous_index != current_index:
        moved.insert(current_index, moved.pop(previous_index))
    return tuple(moved)


def reorder_visible(
    todos: Sequence[Todo],
    visible_ids: Sequence[str],
    previous_index: int,
    current_index: int,
) -> tuple[Todo, ...]:
    """Apply a reorder of the visible subsequence to the full todo sequence.

    Args:
        todos: Full ordered todo sequence
        visible_ids: Ids of the visible todos before the move, in display order
        previous_index: Index of the dragged todo within ``visible_ids``
        current_index: Drop index within ``visible_ids``

    Returns:
        New full sequence; equal to ``todos`` when the indices are equal

    Raises:
        ReorderError: If the indices are out of range, ``visible_ids`` has
            duplicates, or names a todo that is not in ``todos``
    """
    if len(set(visible_ids)) != len(visible_ids):
        msg = "Visible ids contain duplicates"
        raise ReorderError(msg)

    next_visible_ids = move_item(visible_ids, previous_index, current_index)
    if previous_index == current_index:
        return tuple(todos)

    visible_set = set(visible_ids)
    visible_positions = [index for index, todo in enumerate(todos) if todo.id in visible_set]
    if len(visible_positions) != len(visible_set):
        msg = "Visible ids do not all refer to existing todos"
        raise ReorderError(msg)

    todo_map = {todo.id: todo for todo in todos}
    next_todos = list(todos)
    for position, todo_id in zip(visible_positions, next_visible_ids, strict=True):
        next_todos[position] = todo_map[todo_id]
    return tuple(next_todos)
