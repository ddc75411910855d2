"""
Tests for the client-side TaskStore

- Identity binding and clearing
- Loading/error state around every operation
- Failed operations leave local state untouched
- Optimistic reorder is kept when persisting fails
"""

from datetime import datetime

import pytest

from duely.core import service
from duely.core.exceptions import (
    DuelyError,
    InvalidStateError,
    TaskNotFoundError,
    TransientError,
    UnauthorizedError,
    ValidationError,
)
from duely.core.models import TaskPatch
from duely.sync import LocalBackend, TaskStore, error_kind


class FlakyBackend(LocalBackend):
    """LocalBackend that can be told to fail specific operations."""

    def __init__(self):
        self.failures = {}
        self.loading_seen = []
        self.store = None

    def _maybe_fail(self, name):
        if self.store is not None:
            self.loading_seen.append(self.store.is_loading)
        if name in self.failures:
            raise self.failures[name]

    def list_active(self, owner_id):
        self._maybe_fail("list_active")
        return super().list_active(owner_id)

    def update(self, owner_id, task_id, patch):
        self._maybe_fail("update")
        return super().update(owner_id, task_id, patch)

    def soft_delete(self, owner_id, task_id):
        self._maybe_fail("soft_delete")
        return super().soft_delete(owner_id, task_id)

    def reorder(self, owner_id, task_ids):
        self._maybe_fail("reorder")
        return super().reorder(owner_id, task_ids)


@pytest.fixture
def backend():
    return FlakyBackend()


@pytest.fixture
def store(backend):
    store = TaskStore(backend)
    backend.store = store
    return store


def _titles(tasks):
    return [t.title for t in tasks]


# --- Identity ---


def test_bind_owner_loads_active_tasks(store, owner, make_task):
    make_task("A")
    make_task("B")

    store.bind_owner(owner)

    assert store.owner_id == owner
    assert _titles(store.tasks) == ["A", "B"]
    assert store.error is None


def test_bind_owner_none_clears_everything(store, owner, make_task):
    task = make_task("A")
    store.bind_owner(owner)
    store.delete(task.id)
    store.load_trash()
    store.update("missing", TaskPatch(title="x"))
    assert store.error is not None

    store.bind_owner(None)

    assert store.owner_id is None
    assert store.tasks == []
    assert store.trashed == []
    assert store.trash_loaded is False
    assert store.error is None


def test_switching_identity_replaces_cache(store, owner, make_task):
    make_task("Alice's")
    make_task("Bob's", owner_id="bob")

    store.bind_owner(owner)
    store.bind_owner("bob")

    assert _titles(store.tasks) == ["Bob's"]


def test_signed_out_operations_are_unauthorized(store):
    assert store.create("Task") is None
    assert store.error_kind == "unauthorized"
    assert store.is_loading is False


# --- Loading / error plumbing ---


def test_is_loading_set_during_call_and_cleared_after(store, backend, owner, make_task):
    task = make_task()
    store.bind_owner(owner)
    backend.loading_seen.clear()

    store.update(task.id, TaskPatch(title="Renamed"))

    assert backend.loading_seen == [True]
    assert store.is_loading is False


def test_is_loading_cleared_after_failure(store, backend, owner, make_task):
    task = make_task()
    store.bind_owner(owner)
    backend.failures["update"] = TransientError("timed out")

    assert store.update(task.id, TaskPatch(title="Renamed")) is None
    assert store.is_loading is False
    assert store.error == "timed out"
    assert store.error_kind == "transient"


def test_failed_update_leaves_local_state_unchanged(store, backend, owner, make_task):
    task = make_task("Original")
    store.bind_owner(owner)
    backend.failures["update"] = TransientError("storage unavailable")

    store.update(task.id, TaskPatch(title="Renamed"))

    assert _titles(store.tasks) == ["Original"]
    assert service.get_task(owner, task.id).title == "Original"


def test_error_is_cleared_when_next_operation_starts(store, owner, make_task):
    store.bind_owner(owner)
    store.create("")
    assert store.error_kind == "validation"

    assert store.create("Valid") is not None
    assert store.error is None
    assert store.error_kind is None


def test_failed_create_persists_and_caches_nothing(store, owner):
    store.bind_owner(owner)

    assert store.create("   ") is None

    assert store.tasks == []
    assert service.list_active(owner) == []


def test_failed_delete_keeps_task_in_list(store, backend, owner, make_task):
    task = make_task()
    store.bind_owner(owner)
    backend.failures["soft_delete"] = TransientError("offline")

    assert store.delete(task.id) is False
    assert [t.id for t in store.tasks] == [task.id]


def test_failed_refresh_keeps_previous_cache(store, backend, owner, make_task):
    make_task("Cached")
    store.bind_owner(owner)
    backend.failures["list_active"] = TransientError("offline")

    assert store.refresh() is False
    assert _titles(store.tasks) == ["Cached"]


# --- Mutations ---


def test_create_appends_confirmed_task(store, owner):
    store.bind_owner(owner)

    task = store.create("New", end_date="2025-01-10", priority="high")

    assert task is not None
    assert store.tasks[-1].id == task.id
    assert task.priority == "high"


def test_toggle_completion_uses_cached_copy(store, owner, make_task):
    task = make_task()
    store.bind_owner(owner)

    assert store.toggle_completion(task.id).completed is True
    assert store.completed_tasks()[0].id == task.id
    assert store.pending_tasks() == []


def test_toggle_unknown_task_is_not_found(store, owner):
    store.bind_owner(owner)

    assert store.toggle_completion("missing") is None
    assert store.error_kind == "not_found"


def test_attachments_through_store(store, owner, make_task):
    task = make_task()
    store.bind_owner(owner)
    attachment = service.new_attachment("a.txt", 3, "text/plain", "blob:a")

    assert [f.id for f in store.add_attachment(task.id, attachment).files] == [attachment.id]
    assert store.remove_attachment(task.id, attachment.id).files == []

    assert store.remove_attachment(task.id, "missing") is None
    assert store.error_kind == "not_found"


def test_delete_and_restore_move_between_lists(store, owner, make_task):
    task = make_task()
    store.bind_owner(owner)
    store.load_trash()

    assert store.delete(task.id) is True
    assert store.tasks == []
    assert [t.id for t in store.trashed] == [task.id]

    assert store.restore(task.id) is True
    assert [t.id for t in store.tasks] == [task.id]
    assert store.trashed == []


def test_restore_active_task_reports_invalid_state(store, owner, make_task):
    task = make_task()
    store.bind_owner(owner)

    assert store.restore(task.id) is False
    assert store.error_kind == "invalid_state"
    assert [t.id for t in store.tasks] == [task.id]


def test_permanent_delete_and_empty_trash(store, owner, make_task):
    a, b, c = make_task("A"), make_task("B"), make_task("C")
    store.bind_owner(owner)
    for task in (a, b, c):
        store.delete(task.id)
    store.load_trash()

    assert store.permanent_delete(a.id) is True
    assert {t.id for t in store.trashed} == {b.id, c.id}

    assert store.empty_trash() == 2
    assert store.trashed == []
    assert service.list_trashed(owner) == []


def test_views_derive_status_at_read_time(store, owner, make_task):
    make_task("Urgent", start="2025-01-01", end="2025-01-10")
    store.bind_owner(owner)

    assert store.views(datetime(2025, 1, 9))[0].status == "urgent"
    assert store.views(datetime(2025, 1, 11, 1))[0].status == "overdue"


# --- Reorder ---


def test_reorder_applies_locally_and_persists(store, owner, make_task):
    a, b, c = make_task("A"), make_task("B"), make_task("C")
    store.bind_owner(owner)

    assert store.reorder([c.id, a.id, b.id]) is True

    assert _titles(store.tasks) == ["C", "A", "B"]
    assert [t.order for t in store.tasks] == [0, 1, 2]
    assert _titles(service.list_active(owner)) == ["C", "A", "B"]


def test_failed_reorder_is_not_rolled_back(store, backend, owner, make_task):
    a, b = make_task("A"), make_task("B")
    store.bind_owner(owner)
    backend.failures["reorder"] = TransientError("offline")

    assert store.reorder([b.id, a.id]) is False

    assert _titles(store.tasks) == ["B", "A"]
    assert store.error_kind == "transient"
    assert _titles(service.list_active(owner)) == ["A", "B"]


def test_reorder_keeps_unlisted_tasks_after_listed_ones(store, owner, make_task):
    a, b, c = make_task("A"), make_task("B"), make_task("C")
    store.bind_owner(owner)

    store.reorder([c.id, "unknown"])

    assert _titles(store.tasks) == ["C", "A", "B"]


def test_move(store, owner, make_task):
    a, b, c = make_task("A"), make_task("B"), make_task("C")
    store.bind_owner(owner)

    assert store.move(a.id, c.id) is True

    assert _titles(store.tasks) == ["B", "C", "A"]
    assert _titles(service.list_active(owner)) == ["B", "C", "A"]


def test_move_unknown_task(store, owner, make_task):
    a = make_task("A")
    store.bind_owner(owner)

    assert store.move(a.id, "missing") is False
    assert store.error_kind == "not_found"


# --- error_kind ---


@pytest.mark.parametrize(
    "exc, kind",
    [
        (UnauthorizedError(), "unauthorized"),
        (ValidationError("bad"), "validation"),
        (InvalidStateError("t", "active", "restore"), "invalid_state"),
        (TaskNotFoundError("t"), "not_found"),
        (TransientError("slow"), "transient"),
        (DuelyError("other"), "error"),
    ],
)
def test_error_kind(exc, kind):
    assert error_kind(exc) == kind
