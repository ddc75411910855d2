"""
FILE: duely/core/reorder.py
PURPOSE: Manual ordering of an owner's active tasks
EXPORTS:
  - array_move(items, old_index, new_index) -> List
  - reorder(owner_id, ordered_ids) -> int
  - move_one(owner_id, active_id, over_id) -> List[str]
DEPENDENCIES:
  - duely.core.repository (set_order, list_active)
  - duely.core.exceptions (ValidationError, TaskNotFoundError)
NOTES:
  - reorder() writes order = index for the whole sequence in one transaction
  - Active tasks missing from the sequence keep their relative order and are
    placed after the listed ones, so no two tasks share an order value
  - Foreign, trashed or unknown ids are skipped, never fatal
  - move_one() mirrors drag-and-drop: moving down lands after the target,
    moving up lands before it
  - Concurrent reorders are last-write-wins (full snapshot, no merge)
"""

import logging
from typing import List, Sequence, TypeVar

from . import repository
from .exceptions import TaskNotFoundError, ValidationError, UnauthorizedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def array_move(items: Sequence[T], old_index: int, new_index: int) -> List[T]:
    """
    Return a copy of `items` with the element at old_index moved to new_index.

    Raises:
        IndexError: If either index is out of range
    """
    size = len(items)
    if not (0 <= old_index < size) or not (0 <= new_index < size):
        raise IndexError(f"Move {old_index} -> {new_index} out of range for {size} item(s)")

    result = list(items)
    result.insert(new_index, result.pop(old_index))
    return result


def reorder(owner_id: str, ordered_ids: Sequence[str]) -> int:
    """
    Persist a new ordering of the owner's active tasks.

    Unlisted active tasks follow the listed ones in their current order.

    Args:
        owner_id: Owner whose tasks are reordered
        ordered_ids: Task ids in the desired order

    Returns:
        Number of listed tasks whose order was written (skipped ids not counted)

    Raises:
        ValidationError: If ordered_ids is empty or repeats an id
    """
    if not owner_id:
        raise UnauthorizedError()
    ids = list(ordered_ids or [])
    if not ids:
        raise ValidationError("Invalid task IDs provided")
    if len(set(ids)) != len(ids):
        raise ValidationError("Task IDs must not repeat in a reorder")

    listed = set(ids)
    remaining = [t.id for t in repository.list_active(owner_id) if t.id not in listed]
    if remaining:
        logger.debug("Reorder for %s appends %d unlisted task(s)", owner_id, len(remaining))

    updated = repository.set_order(owner_id, ids + remaining) - len(remaining)
    if updated != len(ids):
        logger.debug(
            "Reorder for %s skipped %d id(s) not active for this owner",
            owner_id, len(ids) - updated,
        )
    return updated


def move_one(owner_id: str, active_id: str, over_id: str) -> List[str]:
    """
    Move one task onto another task's position and persist the result.

    Returns:
        The full resulting id sequence

    Raises:
        TaskNotFoundError: If either id is not one of the owner's active tasks
    """
    if not owner_id:
        raise UnauthorizedError()
    ids = [t.id for t in repository.list_active(owner_id)]

    for task_id in (active_id, over_id):
        if task_id not in ids:
            raise TaskNotFoundError(task_id)

    if active_id == over_id:
        return ids

    moved = array_move(ids, ids.index(active_id), ids.index(over_id))
    reorder(owner_id, moved)
    return moved
