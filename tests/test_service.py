"""
Tests for the task lifecycle service

- Create validation (nothing persisted on failure)
- Owner scoping
- Partial updates and attachments
- Trash lifecycle: soft delete, restore, permanent delete, empty trash
- Views: tasks_for_date, search_tasks
- Storage: locked database, naive timestamps
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from duely.core import lifecycle, repository, service
from duely.core.exceptions import (
    DuelyError,
    InvalidStateError,
    NotFoundError,
    TaskNotFoundError,
    TransientError,
    UnauthorizedError,
    ValidationError,
)
from duely.config import get_settings
from duely.core.models import TaskPatch
from duely.sync import LocalBackend, TaskStore


# --- Create ---


def test_create_task_sets_defaults(owner, make_task):
    task = make_task("Write report")

    assert task.owner_id == owner
    assert task.title == "Write report"
    assert task.priority == "medium"
    assert task.color == "#3b82f6"
    assert task.completed is False
    assert task.is_deleted is False
    assert task.deleted_at is None
    assert task.files == []
    assert task.created_at is not None
    assert task.created_at == task.updated_at
    assert len(task.id) == 32


def test_create_task_appends_to_order(make_task):
    first = make_task("First")
    second = make_task("Second")

    assert (first.order, second.order) == (0, 1)


def test_create_task_normalizes_dates_and_color(make_task):
    task = make_task("Normalize", start="2025-01-01", end="2025-01-10", color="#ABCDEF")

    assert task.start_date == "2025-01-01T00:00:00"
    assert task.end_date == "2025-01-10T00:00:00"
    assert task.color == "#abcdef"


def test_create_task_end_defaults_to_start(owner):
    task = service.create_task(owner, "One day", start_date="2025-01-05")

    assert task.end_date == task.start_date


@pytest.mark.parametrize("title", ["", "   "])
def test_create_task_empty_title_persists_nothing(owner, title):
    with pytest.raises(ValidationError):
        service.create_task(owner, title, start_date="2025-01-01", end_date="2025-01-10")

    assert service.list_active(owner) == []


def test_create_task_rejects_bad_priority(owner):
    with pytest.raises(ValidationError):
        service.create_task(owner, "Bad", priority="critical")
    assert service.list_active(owner) == []


def test_create_task_rejects_bad_date(owner):
    with pytest.raises(ValidationError):
        service.create_task(owner, "Bad", end_date="next tuesday")


def test_create_task_rejects_bad_color(owner):
    with pytest.raises(ValidationError):
        service.create_task(owner, "Bad", color="blue")


@pytest.mark.parametrize("owner_id", [None, "", "  "])
def test_operations_without_identity_are_unauthorized(owner_id):
    with pytest.raises(UnauthorizedError):
        service.create_task(owner_id, "Task")
    with pytest.raises(UnauthorizedError):
        service.list_active(owner_id)


# --- Owner scoping ---


def test_owner_never_sees_other_owners_tasks(make_task):
    mine = make_task("Mine")
    theirs = make_task("Theirs", owner_id="bob")

    assert [t.id for t in service.list_active("alice")] == [mine.id]
    assert [t.id for t in service.list_active("bob")] == [theirs.id]

    with pytest.raises(TaskNotFoundError):
        service.get_task("alice", theirs.id)
    with pytest.raises(TaskNotFoundError):
        service.soft_delete("alice", theirs.id)
    with pytest.raises(TaskNotFoundError):
        service.update_task("alice", theirs.id, TaskPatch(title="Hijack"))

    assert service.get_task("bob", theirs.id).title == "Theirs"


def test_find_task_by_prefix(owner, make_task):
    task = make_task()

    assert service.find_task(owner, task.id[:8]).id == task.id
    assert service.find_task(owner, task.id).id == task.id


def test_find_task_unknown_prefix(owner, make_task):
    make_task()
    with pytest.raises(TaskNotFoundError):
        service.find_task(owner, "zzzz")


def test_find_task_empty_ref(owner):
    with pytest.raises(ValidationError):
        service.find_task(owner, "  ")


# --- Update ---


def test_update_changes_only_supplied_fields(owner, make_task):
    task = make_task("Original", description="Keep me", priority="low")

    updated = service.update_task(owner, task.id, TaskPatch(title="Renamed"))

    assert updated.title == "Renamed"
    assert updated.description == "Keep me"
    assert updated.priority == "low"
    assert updated.end_date == task.end_date


def test_update_bumps_updated_at(owner, make_task):
    task = make_task()
    repository.update_task(owner, task.id, {}, now="2000-01-01T00:00:00")

    updated = service.update_task(owner, task.id, TaskPatch(priority="high"))

    assert updated.updated_at > "2000-01-01T00:00:00"


def test_update_can_clear_description(owner, make_task):
    task = make_task(description="Something")

    updated = service.update_task(owner, task.id, TaskPatch(description=""))

    assert updated.description is None


def test_update_rejects_empty_title(owner, make_task):
    task = make_task("Keep")

    with pytest.raises(ValidationError):
        service.update_task(owner, task.id, TaskPatch(title=" "))
    assert service.get_task(owner, task.id).title == "Keep"


def test_toggle_completion(owner, make_task):
    task = make_task()

    assert service.toggle_completion(owner, task.id).completed is True
    assert service.toggle_completion(owner, task.id).completed is False


def test_pending_and_completed_lists(owner, make_task):
    open_task = make_task("Open")
    done_task = make_task("Done")
    service.toggle_completion(owner, done_task.id)

    assert [t.id for t in service.list_pending(owner)] == [open_task.id]
    assert [t.id for t in service.list_completed(owner)] == [done_task.id]


def test_trashed_task_can_still_be_edited(owner, make_task):
    task = make_task()
    service.soft_delete(owner, task.id)

    updated = service.update_task(owner, task.id, TaskPatch(title="Edited in trash"))

    assert updated.title == "Edited in trash"
    assert updated.is_deleted is True


# --- Attachments ---


def test_add_and_remove_attachments(owner, make_task):
    task = make_task()
    first = service.new_attachment("notes.pdf", 2048, "application/pdf", "blob:1")
    second = service.new_attachment("photo.png", 10, "image/png", "blob:2")

    service.add_attachment(owner, task.id, first)
    updated = service.add_attachment(owner, task.id, second)

    assert [f.name for f in updated.files] == ["notes.pdf", "photo.png"]
    assert updated.files[0].data_ref == "blob:1"

    updated = service.remove_attachment(owner, task.id, first.id)

    assert [f.id for f in updated.files] == [second.id]


def test_remove_unknown_attachment(owner, make_task):
    task = make_task()

    with pytest.raises(NotFoundError):
        service.remove_attachment(owner, task.id, "missing")


def test_new_attachment_validation():
    with pytest.raises(ValidationError):
        service.new_attachment("", 1, "text/plain", "blob:1")
    with pytest.raises(ValidationError):
        service.new_attachment("a.txt", -1, "text/plain", "blob:1")


def test_files_patch_replaces_attachment_list(owner, make_task):
    task = make_task()
    attachment = service.new_attachment("a.txt", 1, "text/plain", "blob:a")
    service.add_attachment(owner, task.id, attachment)

    updated = service.update_task(owner, task.id, TaskPatch(files=[]))

    assert updated.files == []


def test_attachment_owned_by_another_task_is_rejected(owner, make_task):
    first, second = make_task("First"), make_task("Second")
    attachment = service.new_attachment("a.txt", 1, "text/plain", "blob:a")
    service.add_attachment(owner, first.id, attachment)

    with pytest.raises(ValidationError):
        service.add_attachment(owner, second.id, attachment)
    with pytest.raises(ValidationError):
        service.update_task(owner, second.id, TaskPatch(files=[attachment]))

    assert service.get_task(owner, second.id).files == []
    assert [f.id for f in service.get_task(owner, first.id).files] == [attachment.id]


# --- Trash lifecycle ---


def test_soft_delete_then_restore_round_trip(owner, make_task):
    task = make_task()

    trashed = service.soft_delete(owner, task.id)

    assert trashed.is_deleted is True
    assert trashed.deleted_at is not None
    assert service.list_active(owner) == []
    assert [t.id for t in service.list_trashed(owner)] == [task.id]

    restored = service.restore(owner, task.id)

    assert restored.is_deleted is False
    assert restored.deleted_at is None
    assert [t.id for t in service.list_active(owner)] == [task.id]
    assert service.list_trashed(owner) == []


def test_soft_delete_is_idempotent(owner, make_task):
    task = make_task()
    first = service.soft_delete(owner, task.id, now=datetime(2025, 1, 1))

    second = service.soft_delete(owner, task.id, now=datetime(2025, 2, 1))

    assert second.is_deleted is True
    assert second.deleted_at == first.deleted_at == "2025-01-01T00:00:00"


def test_restore_active_task_is_invalid_state(owner, make_task):
    task = make_task()

    with pytest.raises(InvalidStateError) as exc_info:
        service.restore(owner, task.id)

    assert exc_info.value.state == "active"
    assert service.get_task(owner, task.id).is_deleted is False


def test_restore_appends_to_end_of_order(owner, make_task):
    first = make_task("First")
    make_task("Second")
    make_task("Third")

    service.soft_delete(owner, first.id)
    restored = service.restore(owner, first.id)

    assert restored.order == 3
    assert service.list_active(owner)[-1].id == first.id


def test_permanent_delete_of_active_task_is_rejected(owner, make_task):
    task = make_task()

    with pytest.raises(InvalidStateError):
        service.permanent_delete(owner, task.id)

    assert service.get_task(owner, task.id).id == task.id


def test_permanent_delete_removes_task(owner, make_task):
    task = make_task()
    service.add_attachment(owner, task.id, service.new_attachment("a", 1, "text/plain", "r"))
    service.soft_delete(owner, task.id)

    service.permanent_delete(owner, task.id)

    with pytest.raises(TaskNotFoundError):
        service.get_task(owner, task.id)
    assert service.list_trashed(owner) == []
    with pytest.raises(TaskNotFoundError):
        service.restore(owner, task.id)


def test_empty_trash_only_touches_owners_trash(owner, make_task):
    keep = make_task("Keep")
    gone_1 = make_task("Gone 1")
    gone_2 = make_task("Gone 2")
    other = make_task("Bob's", owner_id="bob")
    for task in (gone_1, gone_2):
        service.soft_delete(owner, task.id)
    service.soft_delete("bob", other.id)

    assert service.empty_trash(owner) == 2

    assert [t.id for t in service.list_active(owner)] == [keep.id]
    assert service.list_trashed(owner) == []
    assert [t.id for t in service.list_trashed("bob")] == [other.id]
    assert service.empty_trash(owner) == 0


def test_trash_is_listed_most_recent_first(owner, make_task):
    older = make_task("Older")
    newer = make_task("Newer")
    service.soft_delete(owner, older.id, now=datetime(2025, 1, 1))
    service.soft_delete(owner, newer.id, now=datetime(2025, 1, 2))

    assert [t.id for t in service.list_trashed(owner)] == [newer.id, older.id]


def test_errors_share_a_base_class():
    for cls in (ValidationError, NotFoundError, InvalidStateError, UnauthorizedError):
        assert issubclass(cls, DuelyError)


# --- Lifecycle table ---


def test_no_direct_edge_from_active_to_purged():
    assert lifecycle.next_state("active", lifecycle.ACTION_PURGE) is None
    assert lifecycle.next_state("trashed", lifecycle.ACTION_PURGE) == "purged"
    assert lifecycle.next_state("trashed", lifecycle.ACTION_RESTORE) == "active"
    assert lifecycle.next_state("active", lifecycle.ACTION_RESTORE) is None


def test_purged_is_terminal():
    assert all(state != "purged" for state, _ in lifecycle.TRANSITIONS)


# --- Views ---


def test_tasks_for_date(owner, make_task):
    spanning = make_task("Spanning", start="2025-01-01", end="2025-01-10")
    starts = make_task("Starts", start="2025-01-05T09:00:00", end="2025-01-20")
    make_task("Later", start="2025-02-01", end="2025-02-02")

    ids = [t.id for t in service.tasks_for_date(owner, "2025-01-05")]

    assert ids == [spanning.id, starts.id]


def test_tasks_for_date_excludes_trash(owner, make_task):
    task = make_task()
    service.soft_delete(owner, task.id)

    assert service.tasks_for_date(owner, "2025-01-05") == []


def test_filter_by_date_works_on_any_task_list(owner, make_task):
    inside = make_task("Inside", start="2025-01-01", end="2025-01-10")
    outside = make_task("Outside", start="2025-02-01", end="2025-02-10")

    assert service.filter_by_date([outside, inside], "2025-01-10") == [inside]
    with pytest.raises(ValidationError):
        service.filter_by_date([inside], "not-a-date")


def test_search_matches_title_and_description(owner, make_task):
    by_title = make_task("Quarterly REPORT")
    by_desc = make_task("Other", description="draft the report outline")
    make_task("Unrelated")

    ids = {t.id for t in service.search_tasks(owner, "report", now=datetime(2025, 1, 2))}

    assert ids == {by_title.id, by_desc.id}


def test_search_by_status_sorts_by_urgency(owner, make_task):
    now = datetime(2025, 1, 9)
    later = make_task("Later", end="2025-03-01")
    urgent = make_task("Urgent", end="2025-01-10")

    assert [t.id for t in service.search_tasks(owner, now=now)] == [urgent.id, later.id]
    assert [t.id for t in service.search_tasks(owner, status="urgent", now=now)] == [urgent.id]


def test_search_unknown_status(owner):
    with pytest.raises(ValidationError):
        service.search_tasks(owner, status="soon")


# --- Storage ---


def test_locked_database_is_transient(owner, make_task, monkeypatch):
    cached = make_task("Cached")
    store = TaskStore(LocalBackend())
    store.bind_owner(owner)
    monkeypatch.setenv("DUELY_DB_TIMEOUT", "0.1")

    blocker = sqlite3.connect(str(get_settings().db_path), isolation_level=None)
    blocker.execute("BEGIN EXCLUSIVE")
    try:
        with pytest.raises(TransientError):
            service.create_task(owner, "Blocked")

        assert store.create("Blocked") is None
        assert store.error_kind == "transient"
        assert store.is_loading is False
        assert [t.id for t in store.tasks] == [cached.id]
    finally:
        blocker.rollback()
        blocker.close()

    assert [t.id for t in service.list_active(owner)] == [cached.id]


def test_aware_timestamps_are_stored_as_naive_local(owner, make_task):
    task = make_task()
    deleted = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    trashed = service.soft_delete(owner, task.id, now=deleted)

    assert trashed.deleted_at == deleted.astimezone().replace(tzinfo=None).isoformat()
    assert "+" not in service.get_task(owner, task.id).deleted_at
