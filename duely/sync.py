"""
FILE: duely/sync.py
PURPOSE: Client-side task store kept in sync with the lifecycle backend
EXPORTS:
  - LifecycleBackend (Protocol): external interface of the lifecycle store
  - LocalBackend: LifecycleBackend over duely.core (SQLite)
  - TaskView (NamedTuple): task plus freshly derived status
  - error_kind(exc) -> str
  - TaskStore: session cache with loading/error state
DEPENDENCIES:
  - duely.core.service, duely.core.reorder (LocalBackend)
  - duely.core.status (derive_status on every read)
  - duely.core.exceptions (DuelyError hierarchy)
NOTES:
  - One TaskStore per client session, injected into the UI (no global)
  - bind_owner(None) clears everything so no data leaks across sessions
  - Every operation: is_loading on, error cleared, backend call, merge on
    success, record error on failure, is_loading off in `finally`
  - Failed operations never touch local state, EXCEPT reorder/move: they are
    applied locally first and not rolled back if persisting fails
  - No automatic retries; the user re-triggers the action
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Protocol, Sequence

from .core import reorder as reorder_engine
from .core import service
from .core.exceptions import (
    DuelyError,
    InvalidStateError,
    NotFoundError,
    TaskNotFoundError,
    TransientError,
    UnauthorizedError,
    ValidationError,
)
from .core.models import Attachment, Task, TaskPatch
from .core.status import derive_status

logger = logging.getLogger(__name__)


class LifecycleBackend(Protocol):
    """Operations the store relies on. All are scoped by owner_id."""

    def list_active(self, owner_id: str) -> List[Task]: ...

    def list_trashed(self, owner_id: str) -> List[Task]: ...

    def create(self, owner_id: str, fields: Dict[str, Any]) -> Task: ...

    def update(self, owner_id: str, task_id: str, patch: TaskPatch) -> Task: ...

    def soft_delete(self, owner_id: str, task_id: str) -> Task: ...

    def restore(self, owner_id: str, task_id: str) -> Task: ...

    def permanent_delete(self, owner_id: str, task_id: str) -> None: ...

    def empty_trash(self, owner_id: str) -> int: ...

    def reorder(self, owner_id: str, task_ids: Sequence[str]) -> None: ...


class LocalBackend:
    """LifecycleBackend backed by the local SQLite service layer."""

    def list_active(self, owner_id: str) -> List[Task]:
        return service.list_active(owner_id)

    def list_trashed(self, owner_id: str) -> List[Task]:
        return service.list_trashed(owner_id)

    def create(self, owner_id: str, fields: Dict[str, Any]) -> Task:
        return service.create_task(owner_id, **fields)

    def update(self, owner_id: str, task_id: str, patch: TaskPatch) -> Task:
        return service.update_task(owner_id, task_id, patch)

    def soft_delete(self, owner_id: str, task_id: str) -> Task:
        return service.soft_delete(owner_id, task_id)

    def restore(self, owner_id: str, task_id: str) -> Task:
        return service.restore(owner_id, task_id)

    def permanent_delete(self, owner_id: str, task_id: str) -> None:
        service.permanent_delete(owner_id, task_id)

    def empty_trash(self, owner_id: str) -> int:
        return service.empty_trash(owner_id)

    def reorder(self, owner_id: str, task_ids: Sequence[str]) -> None:
        reorder_engine.reorder(owner_id, task_ids)


class TaskView(NamedTuple):
    """A task as handed to the UI, with status derived at read time."""

    task: Task
    status: str


_ERROR_KINDS = (
    (UnauthorizedError, "unauthorized"),
    (ValidationError, "validation"),
    (InvalidStateError, "invalid_state"),
    (NotFoundError, "not_found"),
    (TransientError, "transient"),
)


def error_kind(exc: DuelyError) -> str:
    """Short name for the failure category of `exc`."""
    for cls, kind in _ERROR_KINDS:
        if isinstance(exc, cls):
            return kind
    return "error"


class TaskStore:
    """
    In-memory collection of the current user's tasks.

    Attributes:
        owner_id: Bound identity, or None when signed out
        tasks: Active tasks in display order (completed ones included)
        trashed: Trashed tasks, most recently deleted first (after load_trash)
        is_loading: True while a backend call is in flight
        error: Message of the last failure, cleared when an operation starts
        error_kind: Category of the last failure (see error_kind())
    """

    def __init__(self, backend: Optional[LifecycleBackend] = None):
        self.backend: LifecycleBackend = backend or LocalBackend()
        self.owner_id: Optional[str] = None
        self.tasks: List[Task] = []
        self.trashed: List[Task] = []
        self.trash_loaded = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None

    # --- Identity lifecycle ---

    def bind_owner(self, owner_id: Optional[str]) -> None:
        """
        React to identity changes.

        A new identity loads its active tasks; no identity clears the cache.
        """
        if owner_id == self.owner_id and owner_id is not None:
            return

        self.clear()
        self.owner_id = owner_id
        if owner_id is not None:
            logger.debug("Identity %s bound; loading tasks", owner_id)
            self.refresh()

    def clear(self) -> None:
        """Drop all cached data and error state."""
        self.owner_id = None
        self.tasks = []
        self.trashed = []
        self.trash_loaded = False
        self.error = None
        self.error_kind = None

    # --- Operation plumbing ---

    def _owner(self) -> str:
        if self.owner_id is None:
            raise UnauthorizedError("Sign in to manage tasks")
        return self.owner_id

    @contextmanager
    def _operation(self, action: str) -> Iterator[None]:
        """
        Wrap one backend call: loading flag, error capture, guaranteed cleanup.

        DuelyError is recorded on the store and suppressed; code after the
        `with` block runs only on failure.
        """
        self.is_loading = True
        self.error = None
        self.error_kind = None
        try:
            yield
        except DuelyError as e:
            self.error = str(e)
            self.error_kind = error_kind(e)
            logger.warning("%s failed (%s): %s", action, self.error_kind, e)
        finally:
            self.is_loading = False

    def _replace(self, task: Task) -> None:
        for collection in (self.tasks, self.trashed):
            for index, existing in enumerate(collection):
                if existing.id == task.id:
                    collection[index] = task

    def _find(self, task_id: str) -> Optional[Task]:
        for task in self.tasks + self.trashed:
            if task.id == task_id:
                return task
        return None

    # --- Reads ---

    def refresh(self) -> bool:
        """Reload the active list from the backend."""
        with self._operation("load"):
            self.tasks = self.backend.list_active(self._owner())
            return True
        return False

    def load_trash(self) -> bool:
        """Fetch the trash view."""
        with self._operation("load trash"):
            self.trashed = self.backend.list_trashed(self._owner())
            self.trash_loaded = True
            return True
        return False

    def get(self, task_id: str) -> Optional[Task]:
        return self._find(task_id)

    def views(self, now: Optional[datetime] = None) -> List[TaskView]:
        """Active tasks with status computed now (never cached)."""
        now = now or datetime.now()
        return [TaskView(t, derive_status(t, now)) for t in self.tasks]

    def pending_tasks(self) -> List[Task]:
        return [t for t in self.tasks if not t.completed]

    def completed_tasks(self) -> List[Task]:
        return [t for t in self.tasks if t.completed]

    # --- Mutations ---

    def create(self, title: str, **fields: Any) -> Optional[Task]:
        """Create a task; appended locally once the backend confirms it."""
        with self._operation("create"):
            task = self.backend.create(self._owner(), {"title": title, **fields})
            self.tasks.append(task)
            return task
        return None

    def update(self, task_id: str, patch: TaskPatch) -> Optional[Task]:
        """Apply a partial update; merges the confirmed record."""
        with self._operation("update"):
            task = self.backend.update(self._owner(), task_id, patch)
            self._replace(task)
            return task
        return None

    def _patch_local(self, action: str, task_id: str, build_patch) -> Optional[Task]:
        """Update built from the cached copy of a task (must be loaded)."""
        with self._operation(action):
            owner_id = self._owner()
            local = self._find(task_id)
            if local is None:
                raise TaskNotFoundError(task_id)
            task = self.backend.update(owner_id, task_id, build_patch(local))
            self._replace(task)
            return task
        return None

    def toggle_completion(self, task_id: str) -> Optional[Task]:
        return self._patch_local(
            "toggle", task_id, lambda t: TaskPatch(completed=not t.completed)
        )

    def add_attachment(self, task_id: str, attachment: Attachment) -> Optional[Task]:
        return self._patch_local(
            "add attachment", task_id, lambda t: TaskPatch(files=list(t.files) + [attachment])
        )

    def remove_attachment(self, task_id: str, attachment_id: str) -> Optional[Task]:
        def build(task: Task) -> TaskPatch:
            if not any(f.id == attachment_id for f in task.files):
                raise NotFoundError(
                    attachment_id, f"Attachment {attachment_id} not found on task {task_id}"
                )
            return TaskPatch(files=[f for f in task.files if f.id != attachment_id])

        return self._patch_local("remove attachment", task_id, build)

    def delete(self, task_id: str) -> bool:
        """Move a task to the trash."""
        with self._operation("delete"):
            task = self.backend.soft_delete(self._owner(), task_id)
            self.tasks = [t for t in self.tasks if t.id != task_id]
            if self.trash_loaded and not any(t.id == task_id for t in self.trashed):
                self.trashed.insert(0, task)
            return True
        return False

    def restore(self, task_id: str) -> bool:
        """Move a task from the trash back to the active list."""
        with self._operation("restore"):
            task = self.backend.restore(self._owner(), task_id)
            self.trashed = [t for t in self.trashed if t.id != task_id]
            if not any(t.id == task_id for t in self.tasks):
                self.tasks.append(task)
            return True
        return False

    def permanent_delete(self, task_id: str) -> bool:
        with self._operation("permanent delete"):
            self.backend.permanent_delete(self._owner(), task_id)
            self.trashed = [t for t in self.trashed if t.id != task_id]
            return True
        return False

    def empty_trash(self) -> int:
        with self._operation("empty trash"):
            count = self.backend.empty_trash(self._owner())
            self.trashed = []
            return count
        return 0

    def reorder(self, ordered_ids: Sequence[str]) -> bool:
        """
        Reorder immediately in memory, then persist.

        Ids not in the local list are ignored; local tasks missing from
        `ordered_ids` keep their relative order after the listed ones.
        The local order is NOT rolled back if persisting fails.
        """
        wanted = [task_id for task_id in ordered_ids if self._find_active(task_id)]
        listed = set(wanted)
        self.tasks = (
            [self._find_active(task_id) for task_id in wanted]
            + [t for t in self.tasks if t.id not in listed]
        )
        for index, task in enumerate(self.tasks):
            task.order = index

        with self._operation("reorder"):
            self.backend.reorder(self._owner(), [t.id for t in self.tasks])
            return True
        return False

    def move(self, active_id: str, over_id: str) -> bool:
        """Drag-style move of one task onto another's position."""
        ids = [t.id for t in self.tasks]
        with self._operation("move"):
            for task_id in (active_id, over_id):
                if task_id not in ids:
                    raise TaskNotFoundError(task_id)
            moved = reorder_engine.array_move(ids, ids.index(active_id), ids.index(over_id))
        if self.error:
            return False
        if active_id == over_id:
            return True
        return self.reorder(moved)

    def _find_active(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None
