"""
FILE: duely/core/service.py
PURPOSE: Business logic layer for task lifecycle operations
EXPORTS:
  - create_task(owner_id, title, ...) -> Task
  - get_task(owner_id, task_id) -> Task
  - find_task(owner_id, ref) -> Task
  - list_active(owner_id) -> List[Task]
  - list_trashed(owner_id) -> List[Task]
  - list_pending(owner_id) / list_completed(owner_id) -> List[Task]
  - update_task(owner_id, task_id, patch) -> Task
  - toggle_completion(owner_id, task_id) -> Task
  - new_attachment(name, size, mime_type, data_ref) -> Attachment
  - add_attachment(owner_id, task_id, attachment) -> Task
  - remove_attachment(owner_id, task_id, attachment_id) -> Task
  - soft_delete(owner_id, task_id, now) -> Task
  - restore(owner_id, task_id) -> Task
  - permanent_delete(owner_id, task_id) -> None
  - empty_trash(owner_id) -> int
  - filter_by_date(tasks, day) -> List[Task]
  - tasks_for_date(owner_id, day) -> List[Task]
  - search_tasks(owner_id, query, status, completed, now) -> List[Task]
DEPENDENCIES:
  - duely.core.repository (all persistence)
  - duely.core.lifecycle (allowed transitions)
  - duely.core.status (urgency sort, status filter)
  - duely.core.models (Task, TaskPatch, Attachment)
  - duely.core.exceptions
NOTES:
  - All functions validate input and raise descriptive errors
  - No direct database access (use repository layer)
  - Every operation is scoped by owner_id; a missing owner is UnauthorizedError
  - Hard delete is only reachable from the trash (see lifecycle.TRANSITIONS)
"""

import logging
import uuid
from datetime import date, datetime, time
from typing import List, Optional, Sequence, Union

from . import repository
from .constants import DEFAULT_COLOR, DEFAULT_PRIORITY
from .exceptions import (
    NotFoundError,
    TaskNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from .lifecycle import (
    ACTION_DELETE,
    ACTION_EDIT,
    ACTION_PURGE,
    ACTION_RESTORE,
    require_transition,
)
from .models import Attachment, Task, TaskPatch
from .status import filter_by_status, sort_by_urgency
from ..utils import now_iso, parse_timestamp

logger = logging.getLogger(__name__)


def _require_owner(owner_id: Optional[str]) -> str:
    if owner_id is None or not str(owner_id).strip():
        raise UnauthorizedError()
    return str(owner_id)


def create_task(
    owner_id: str,
    title: str,
    description: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    priority: str = DEFAULT_PRIORITY,
    color: str = DEFAULT_COLOR,
    files: Optional[Sequence[Attachment]] = None,
    now: Optional[datetime] = None,
) -> Task:
    """
    Create a new task with validation.

    Args:
        owner_id: Owning user identity
        title: Task title (required, must not be empty)
        description: Optional markdown description
        start_date: ISO date/time; defaults to now
        end_date: ISO date/time deadline; defaults to start_date
        priority: low, medium or high
        color: #rrggbb display color
        files: Initial attachments

    Returns:
        Newly created Task object, appended to the end of the active order

    Raises:
        UnauthorizedError: If owner_id is empty
        ValidationError: On empty title, bad priority, color or dates.
                         Nothing is persisted.
    """
    owner_id = _require_owner(owner_id)
    created = now_iso(now)

    patch = TaskPatch(
        title=title if title is not None else "",
        description=description,
        start_date=start_date or created,
        end_date=end_date or start_date or created,
        priority=priority,
        color=color,
    ).validate()

    task = repository.create_task(
        owner_id=owner_id,
        title=patch.title,
        description=patch.description,
        start_date=patch.start_date,
        end_date=patch.end_date,
        priority=patch.priority,
        color=patch.color,
        files=files,
        now=created,
    )

    logger.info("Created task %s (%s)", task.id, task.title)
    return task


def get_task(owner_id: str, task_id: str) -> Task:
    """
    Fetch a task (active or trashed).

    Raises:
        TaskNotFoundError: If (id, owner) doesn't resolve
    """
    owner_id = _require_owner(owner_id)
    task = repository.get_task(owner_id, task_id)
    if not task:
        raise TaskNotFoundError(task_id)
    return task


def find_task(owner_id: str, ref: str) -> Task:
    """
    Resolve a full id or a unique id prefix.

    Raises:
        ValidationError: If ref is empty or the prefix is ambiguous
        TaskNotFoundError: If nothing matches
    """
    owner_id = _require_owner(owner_id)
    ref = (ref or "").strip()
    if not ref:
        raise ValidationError("Task ID cannot be empty")

    task = repository.get_task(owner_id, ref)
    if task:
        return task

    matches = repository.find_tasks_by_prefix(owner_id, ref)
    if not matches:
        raise TaskNotFoundError(ref)
    if len(matches) > 1:
        raise ValidationError(f"Task ID '{ref}' is ambiguous ({len(matches)} matches)")
    return matches[0]


def list_active(owner_id: str) -> List[Task]:
    """Active tasks in manual order."""
    return repository.list_active(_require_owner(owner_id))


def list_trashed(owner_id: str) -> List[Task]:
    """Trashed tasks, most recently deleted first."""
    return repository.list_trashed(_require_owner(owner_id))


def list_pending(owner_id: str) -> List[Task]:
    """Active tasks that are not completed, in manual order."""
    return [t for t in list_active(owner_id) if not t.completed]


def list_completed(owner_id: str) -> List[Task]:
    """Active tasks that are completed, in manual order."""
    return [t for t in list_active(owner_id) if t.completed]


def update_task(owner_id: str, task_id: str, patch: TaskPatch) -> Task:
    """
    Apply a partial update to an active or trashed task.

    Only fields supplied in the patch change; updated_at is bumped.

    Raises:
        ValidationError: If the patch is invalid
        TaskNotFoundError: If (id, owner) doesn't resolve
    """
    owner_id = _require_owner(owner_id)
    patch = patch.validate()

    task = get_task(owner_id, task_id)
    require_transition(task, ACTION_EDIT)

    updated = repository.update_task(owner_id, task_id, patch.changes())
    if not updated:
        # Purged between the read and the write
        raise TaskNotFoundError(task_id)

    logger.debug("Updated task %s fields=%s", task_id, sorted(patch.changes()))
    return updated


def toggle_completion(owner_id: str, task_id: str) -> Task:
    """Flip the completed flag."""
    task = get_task(owner_id, task_id)
    return update_task(owner_id, task_id, TaskPatch(completed=not task.completed))


def new_attachment(
    name: str,
    size: int,
    mime_type: str,
    data_ref: str,
    now: Optional[datetime] = None,
) -> Attachment:
    """
    Build an attachment descriptor with a fresh id.

    Raises:
        ValidationError: If name is empty or size is negative
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Attachment name cannot be empty")
    if size is None or size < 0:
        raise ValidationError("Attachment size must be zero or positive")

    return Attachment(
        id=uuid.uuid4().hex,
        name=name,
        size=size,
        mime_type=mime_type or "application/octet-stream",
        data_ref=data_ref,
        uploaded_at=now_iso(now),
    )


def add_attachment(owner_id: str, task_id: str, attachment: Attachment) -> Task:
    """Append an attachment to a task."""
    task = get_task(owner_id, task_id)
    require_transition(task, ACTION_EDIT)

    updated = repository.add_attachment(task.owner_id, task_id, attachment)
    if not updated:
        raise TaskNotFoundError(task_id)
    return updated


def remove_attachment(owner_id: str, task_id: str, attachment_id: str) -> Task:
    """
    Remove an attachment from a task.

    Raises:
        NotFoundError: If the task has no attachment with that id
    """
    task = get_task(owner_id, task_id)
    require_transition(task, ACTION_EDIT)
    if not any(f.id == attachment_id for f in task.files):
        raise NotFoundError(
            attachment_id, f"Attachment {attachment_id} not found on task {task_id}"
        )

    updated = repository.remove_attachment(task.owner_id, task_id, attachment_id)
    if not updated:
        raise TaskNotFoundError(task_id)
    return updated


# --- Trash lifecycle ---


def soft_delete(owner_id: str, task_id: str, now: Optional[datetime] = None) -> Task:
    """
    Move a task to the trash.

    Idempotent: deleting an already-trashed task succeeds and keeps its
    original deleted_at.

    Raises:
        TaskNotFoundError: If (id, owner) doesn't resolve
    """
    task = get_task(owner_id, task_id)
    require_transition(task, ACTION_DELETE)
    if task.is_deleted:
        return task

    trashed = repository.mark_deleted(task.owner_id, task_id, now_iso(now))
    if not trashed:
        # Deleted (or purged) concurrently; report the current state
        return get_task(owner_id, task_id)

    logger.info("Moved task %s to trash", task_id)
    return trashed


def restore(owner_id: str, task_id: str) -> Task:
    """
    Bring a trashed task back to the active list (appended at the end).

    Raises:
        TaskNotFoundError: If (id, owner) doesn't resolve
        InvalidStateError: If the task is not in the trash
    """
    task = get_task(owner_id, task_id)
    require_transition(task, ACTION_RESTORE)

    restored = repository.clear_deleted(task.owner_id, task_id)
    if not restored:
        raise TaskNotFoundError(task_id)

    logger.info("Restored task %s from trash", task_id)
    return restored


def permanent_delete(owner_id: str, task_id: str) -> None:
    """
    Permanently delete a trashed task. Irreversible.

    Raises:
        TaskNotFoundError: If (id, owner) doesn't resolve
        InvalidStateError: If the task is still active (trash it first)
    """
    task = get_task(owner_id, task_id)
    require_transition(task, ACTION_PURGE)

    if not repository.delete_trashed_task(task.owner_id, task_id):
        raise TaskNotFoundError(task_id)

    logger.info("Permanently deleted task %s", task_id)


def empty_trash(owner_id: str) -> int:
    """Permanently delete all of the owner's trashed tasks. Returns the count."""
    count = repository.delete_all_trashed(_require_owner(owner_id))
    logger.info("Emptied trash for %s: %d task(s) purged", owner_id, count)
    return count


# --- Views ---


def _as_date(day: Union[date, datetime, str]) -> date:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    return parse_timestamp(day, "date").date()


def filter_by_date(tasks: Sequence[Task], day: Union[date, datetime, str]) -> List[Task]:
    """
    Keep the tasks that start, end, or are in progress on `day`.

    A task spans a day when start_date <= day <= end_date (date-wise).

    Raises:
        ValidationError: If day can't be parsed
    """
    day = _as_date(day)
    result = []
    for task in tasks:
        start = parse_timestamp(task.start_date).date()
        end = parse_timestamp(task.end_date).date()
        if start == day or end == day or start <= day <= end:
            result.append(task)
    return result


def tasks_for_date(owner_id: str, day: Union[date, datetime, str]) -> List[Task]:
    """Active tasks that start, end, or are in progress on `day`."""
    return filter_by_date(list_active(owner_id), day)


def search_tasks(
    owner_id: str,
    query: str = "",
    status: Optional[str] = None,
    completed: bool = False,
    now: Optional[datetime] = None,
) -> List[Task]:
    """
    Filter active tasks by completion, text and status; sort by urgency.

    Args:
        query: Case-insensitive substring matched against title and description
        status: Optional derived status to keep (ignored for completed views)
        completed: Show completed tasks instead of open ones

    Raises:
        ValidationError: If status is unknown
    """
    now = now or datetime.now()
    tasks = [t for t in list_active(owner_id) if t.completed == completed]

    query = (query or "").strip().lower()
    if query:
        tasks = [
            t for t in tasks
            if query in t.title.lower() or query in (t.description or "").lower()
        ]

    if status and not completed:
        tasks = filter_by_status(tasks, status, now)

    return sort_by_urgency(tasks, now)
