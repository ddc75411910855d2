"""
FILE: duely/core/lifecycle.py
PURPOSE: Task lifecycle state machine (active -> trashed -> purged)
EXPORTS:
  - ACTIONS / TRANSITIONS: allowed (state, action) -> next state table
  - next_state(state, action) -> str | None
  - require_transition(task, action) -> str
DEPENDENCIES:
  - duely.core.constants (STATE_*)
  - duely.core.exceptions (InvalidStateError)
  - duely.core.models (Task)
NOTES:
  - Purged is terminal and never appears as a "from" state
  - There is no active -> purged edge: permanent deletion goes through the trash
  - Re-deleting a trashed task is allowed and leaves it trashed (idempotent)
"""

from typing import Dict, Optional, Tuple

from .constants import STATE_ACTIVE, STATE_TRASHED, STATE_PURGED
from .exceptions import InvalidStateError
from .models import Task


ACTION_EDIT = "edit"
ACTION_DELETE = "delete"
ACTION_RESTORE = "restore"
ACTION_PURGE = "permanently delete"
ACTION_REORDER = "reorder"

ACTIONS = (ACTION_EDIT, ACTION_DELETE, ACTION_RESTORE, ACTION_PURGE, ACTION_REORDER)

TRANSITIONS: Dict[Tuple[str, str], str] = {
    (STATE_ACTIVE, ACTION_EDIT): STATE_ACTIVE,
    (STATE_ACTIVE, ACTION_DELETE): STATE_TRASHED,
    (STATE_ACTIVE, ACTION_REORDER): STATE_ACTIVE,
    (STATE_TRASHED, ACTION_EDIT): STATE_TRASHED,
    (STATE_TRASHED, ACTION_DELETE): STATE_TRASHED,
    (STATE_TRASHED, ACTION_RESTORE): STATE_ACTIVE,
    (STATE_TRASHED, ACTION_PURGE): STATE_PURGED,
}


def next_state(state: str, action: str) -> Optional[str]:
    """State reached by applying `action` in `state`, or None if not allowed."""
    return TRANSITIONS.get((state, action))


def require_transition(task: Task, action: str) -> str:
    """
    Check that `action` is allowed for the task's current state.

    Returns:
        The state the task will be in afterwards

    Raises:
        InvalidStateError: If the transition table has no such edge
    """
    target = next_state(task.state, action)
    if target is None:
        raise InvalidStateError(task.id, task.state, action)
    return target
