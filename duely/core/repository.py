"""
FILE: duely/core/repository.py
PURPOSE: Database operations and SQLite connection management
EXPORTS:
  - get_connection() -> Connection
  - init_database(conn) -> None
  - create_task(owner_id, title, start_date, end_date, ...) -> Task
  - get_task(owner_id, task_id) -> Task | None
  - find_tasks_by_prefix(owner_id, prefix) -> List[Task]
  - list_active(owner_id) -> List[Task]
  - list_trashed(owner_id) -> List[Task]
  - update_task(owner_id, task_id, changes, now) -> Task | None
  - mark_deleted(owner_id, task_id, deleted_at) -> Task | None
  - clear_deleted(owner_id, task_id, now) -> Task | None
  - delete_trashed_task(owner_id, task_id) -> bool
  - delete_all_trashed(owner_id) -> int
  - set_order(owner_id, task_ids, now) -> int
  - add_attachment(owner_id, task_id, attachment, now) -> Task | None
  - remove_attachment(owner_id, task_id, attachment_id, now) -> Task | None
  - list_expired_trash(cutoff) -> List[Tuple[str, str]]     (admin, all owners)
  - purge_trashed(task_id) -> bool                         (admin, all owners)
DEPENDENCIES:
  - sqlite3 (stdlib)
  - pathlib (stdlib)
  - duely.config (database path and busy timeout)
  - duely.core.models (Task, Attachment)
  - duely.core.exceptions (TransientError, ValidationError)
NOTES:
  - Database stored at ~/.duely/duely.db unless DUELY_DB_PATH is set
  - Auto-creates directory and initializes schema on first run
  - Returns domain objects (Task, etc.), never raw dicts
  - Every owner-facing query is scoped by (id, owner_id)
  - Hard deletes only match rows with is_deleted = 1
  - sqlite3.OperationalError (locked / busy timeout) surfaces as TransientError
  - sqlite3.IntegrityError (constraint violation) surfaces as ValidationError
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import get_settings
from .models import Task, Attachment
from .exceptions import TransientError, ValidationError
from ..utils import now_iso

logger = logging.getLogger(__name__)

# Schema file location (relative to this file)
SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Task columns that update_task() may write
_UPDATABLE_COLUMNS = {
    "title": "title",
    "description": "description",
    "start_date": "start_date",
    "end_date": "end_date",
    "priority": "priority",
    "color": "color",
    "completed": "completed",
}


def get_connection() -> sqlite3.Connection:
    """
    Get SQLite connection to Duely database.

    Creates the database directory if it doesn't exist.
    Enables row_factory for dict-like row access.
    Enables foreign key constraints.
    Initializes database schema on first connection.
    """
    settings = get_settings()

    # Ensure directory exists
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)

    # Connect with row factory for named column access
    conn = sqlite3.connect(settings.db_path, timeout=settings.db_timeout)
    conn.row_factory = sqlite3.Row

    # Enable foreign key constraints (required for ON DELETE CASCADE)
    conn.execute("PRAGMA foreign_keys = ON")

    # Initialize schema if needed
    init_database(conn)

    return conn


def init_database(conn: sqlite3.Connection) -> None:
    """
    Initialize database schema if tables don't exist.

    Safe to call multiple times (uses CREATE TABLE IF NOT EXISTS).
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='tasks'"
    )
    tables_exist = cursor.fetchone() is not None

    if not tables_exist:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
            schema_sql = f.read()

        conn.executescript(schema_sql)
        conn.commit()


@contextmanager
def _db() -> Iterator[sqlite3.Connection]:
    """
    Open a connection for one logical operation.

    Commits on success, rolls back on error, always closes.
    """
    try:
        conn = get_connection()
    except sqlite3.OperationalError as e:
        raise TransientError(f"Storage unavailable: {e}") from e

    try:
        yield conn
        conn.commit()
    except sqlite3.OperationalError as e:
        conn.rollback()
        raise TransientError(f"Storage unavailable: {e}") from e
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(f"Rejected by storage constraints: {e}") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


# --- Row loading helpers ---


def _load_files(conn: sqlite3.Connection, task_ids: Sequence[str]) -> Dict[str, List[Attachment]]:
    """Fetch attachments for the given tasks, grouped by task id in position order."""
    files: Dict[str, List[Attachment]] = {task_id: [] for task_id in task_ids}
    if not task_ids:
        return files

    placeholders = ",".join("?" for _ in task_ids)
    rows = conn.execute(
        f"SELECT * FROM attachments WHERE task_id IN ({placeholders}) ORDER BY position",
        tuple(task_ids),
    ).fetchall()

    for row in rows:
        files[row["task_id"]].append(Attachment.from_row(row))

    return files


def _rows_to_tasks(conn: sqlite3.Connection, rows) -> List[Task]:
    files = _load_files(conn, [row["id"] for row in rows])
    return [Task.from_row(row, files[row["id"]]) for row in rows]


def _fetch_task(conn: sqlite3.Connection, owner_id: str, task_id: str) -> Optional[Task]:
    row = conn.execute(
        "SELECT * FROM tasks WHERE id = ? AND owner_id = ?", (task_id, owner_id)
    ).fetchone()
    if not row:
        return None
    return _rows_to_tasks(conn, [row])[0]


def _next_order(conn: sqlite3.Connection, owner_id: str) -> int:
    """Append position among the owner's active tasks."""
    row = conn.execute(
        "SELECT MAX(sort_order) AS max_order FROM tasks WHERE owner_id = ? AND is_deleted = 0",
        (owner_id,),
    ).fetchone()
    return 0 if row["max_order"] is None else row["max_order"] + 1


def _replace_files(conn: sqlite3.Connection, task_id: str, files: Sequence[Attachment]) -> None:
    conn.execute("DELETE FROM attachments WHERE task_id = ?", (task_id,))
    for position, attachment in enumerate(files):
        _insert_attachment(conn, task_id, attachment, position)


def _insert_attachment(
    conn: sqlite3.Connection, task_id: str, attachment: Attachment, position: int
) -> None:
    conn.execute(
        """
        INSERT INTO attachments (id, task_id, position, name, size, mime_type, data_ref, uploaded_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            attachment.id,
            task_id,
            position,
            attachment.name,
            attachment.size,
            attachment.mime_type,
            attachment.data_ref,
            attachment.uploaded_at,
        ),
    )


def _touch(conn: sqlite3.Connection, owner_id: str, task_id: str, now: str) -> bool:
    cursor = conn.execute(
        "UPDATE tasks SET updated_at = ? WHERE id = ? AND owner_id = ?",
        (now, task_id, owner_id),
    )
    return cursor.rowcount > 0


# --- Task Operations ---


def create_task(
    owner_id: str,
    title: str,
    start_date: str,
    end_date: str,
    description: Optional[str] = None,
    priority: str = "medium",
    color: str = "#3b82f6",
    files: Optional[Sequence[Attachment]] = None,
    now: Optional[str] = None,
) -> Task:
    """
    Create a new task at the end of the owner's active order.

    Returns:
        Newly created Task object

    Note:
        Assigns id, created_at, updated_at and order automatically.
        Task starts active (is_deleted = 0) and not completed.
    """
    task_id = uuid.uuid4().hex
    now = now or now_iso()

    with _db() as conn:
        order = _next_order(conn, owner_id)
        conn.execute(
            """
            INSERT INTO tasks (id, owner_id, title, description, start_date, end_date,
                               priority, color, completed, is_deleted, deleted_at,
                               sort_order, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, 0, NULL, ?, ?, ?)
            """,
            (task_id, owner_id, title, description, start_date, end_date,
             priority, color, order, now, now),
        )
        for position, attachment in enumerate(files or []):
            _insert_attachment(conn, task_id, attachment, position)

        task = _fetch_task(conn, owner_id, task_id)

    logger.debug("Created task %s for owner %s at order %d", task_id, owner_id, order)
    return task


def get_task(owner_id: str, task_id: str) -> Optional[Task]:
    """
    Fetch single task (active or trashed) by ID, scoped to owner.

    Returns:
        Task object if found, None otherwise
    """
    with _db() as conn:
        return _fetch_task(conn, owner_id, task_id)


def find_tasks_by_prefix(owner_id: str, prefix: str) -> List[Task]:
    """Tasks whose id starts with `prefix` (for short ids typed at the CLI)."""
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    with _db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE owner_id = ? AND id LIKE ? ESCAPE '\\' ORDER BY created_at",
            (owner_id, escaped + "%"),
        ).fetchall()
        return _rows_to_tasks(conn, rows)


def list_active(owner_id: str) -> List[Task]:
    """
    List the owner's non-deleted tasks.

    Returns:
        Tasks ordered by order ascending, ties broken by creation time
    """
    with _db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM tasks
            WHERE owner_id = ? AND is_deleted = 0
            ORDER BY sort_order ASC, created_at ASC
            """,
            (owner_id,),
        ).fetchall()
        return _rows_to_tasks(conn, rows)


def list_trashed(owner_id: str) -> List[Task]:
    """
    List the owner's trashed tasks.

    Returns:
        Tasks ordered by deletion time (most recently deleted first)
    """
    with _db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM tasks
            WHERE owner_id = ? AND is_deleted = 1
            ORDER BY deleted_at DESC
            """,
            (owner_id,),
        ).fetchall()
        return _rows_to_tasks(conn, rows)


def update_task(
    owner_id: str,
    task_id: str,
    changes: Dict[str, object],
    now: Optional[str] = None,
) -> Optional[Task]:
    """
    Apply a partial update.

    Args:
        changes: Task field name -> new value. Only these columns are written;
                 a "files" entry replaces the attachment list.

    Returns:
        Updated Task object, or None if (id, owner) doesn't resolve

    Note:
        Automatically updates updated_at timestamp.
    """
    now = now or now_iso()
    assignments = []
    params: List[object] = []
    for name, value in changes.items():
        column = _UPDATABLE_COLUMNS.get(name)
        if column is None:
            continue
        assignments.append(f"{column} = ?")
        params.append(int(value) if name == "completed" else value)

    assignments.append("updated_at = ?")
    params.append(now)

    with _db() as conn:
        cursor = conn.execute(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ? AND owner_id = ?",
            (*params, task_id, owner_id),
        )
        if cursor.rowcount == 0:
            return None

        if "files" in changes:
            _replace_files(conn, task_id, changes["files"] or [])

        return _fetch_task(conn, owner_id, task_id)


def mark_deleted(owner_id: str, task_id: str, deleted_at: str) -> Optional[Task]:
    """
    Move an active task to the trash (soft delete).

    Returns:
        Updated Task, or None if (id, owner) doesn't resolve to an active task
    """
    with _db() as conn:
        cursor = conn.execute(
            """
            UPDATE tasks SET is_deleted = 1, deleted_at = ?, updated_at = ?
            WHERE id = ? AND owner_id = ? AND is_deleted = 0
            """,
            (deleted_at, deleted_at, task_id, owner_id),
        )
        if cursor.rowcount == 0:
            return None
        return _fetch_task(conn, owner_id, task_id)


def clear_deleted(owner_id: str, task_id: str, now: Optional[str] = None) -> Optional[Task]:
    """
    Bring a trashed task back to the active list, appended at the end.

    Returns:
        Updated Task, or None if (id, owner) doesn't resolve to a trashed task
    """
    now = now or now_iso()
    with _db() as conn:
        order = _next_order(conn, owner_id)
        cursor = conn.execute(
            """
            UPDATE tasks SET is_deleted = 0, deleted_at = NULL, sort_order = ?, updated_at = ?
            WHERE id = ? AND owner_id = ? AND is_deleted = 1
            """,
            (order, now, task_id, owner_id),
        )
        if cursor.rowcount == 0:
            return None
        return _fetch_task(conn, owner_id, task_id)


def delete_trashed_task(owner_id: str, task_id: str) -> bool:
    """
    Permanently delete one trashed task. Attachments cascade.

    Returns:
        True if a row was removed
    """
    with _db() as conn:
        cursor = conn.execute(
            "DELETE FROM tasks WHERE id = ? AND owner_id = ? AND is_deleted = 1",
            (task_id, owner_id),
        )
        return cursor.rowcount > 0


def delete_all_trashed(owner_id: str) -> int:
    """Permanently delete every trashed task of the owner. Returns the count."""
    with _db() as conn:
        cursor = conn.execute(
            "DELETE FROM tasks WHERE owner_id = ? AND is_deleted = 1",
            (owner_id,),
        )
        return cursor.rowcount


# --- Ordering ---


def set_order(owner_id: str, task_ids: Sequence[str], now: Optional[str] = None) -> int:
    """
    Assign order = index for each id, in one transaction.

    Ids that are unknown, belong to another owner or are trashed match no row
    and are skipped.

    Returns:
        Number of tasks whose order was written
    """
    now = now or now_iso()
    updated = 0
    with _db() as conn:
        for index, task_id in enumerate(task_ids):
            cursor = conn.execute(
                """
                UPDATE tasks SET sort_order = ?, updated_at = ?
                WHERE id = ? AND owner_id = ? AND is_deleted = 0
                """,
                (index, now, task_id, owner_id),
            )
            updated += cursor.rowcount
    return updated


# --- Attachments ---


def add_attachment(
    owner_id: str, task_id: str, attachment: Attachment, now: Optional[str] = None
) -> Optional[Task]:
    """Append an attachment. Returns the updated Task, or None if not found."""
    now = now or now_iso()
    with _db() as conn:
        if not _touch(conn, owner_id, task_id, now):
            return None
        row = conn.execute(
            "SELECT COALESCE(MAX(position) + 1, 0) AS next_pos FROM attachments WHERE task_id = ?",
            (task_id,),
        ).fetchone()
        _insert_attachment(conn, task_id, attachment, row["next_pos"])
        return _fetch_task(conn, owner_id, task_id)


def remove_attachment(
    owner_id: str, task_id: str, attachment_id: str, now: Optional[str] = None
) -> Optional[Task]:
    """Remove an attachment. Returns the updated Task, or None if not found."""
    now = now or now_iso()
    with _db() as conn:
        if not _touch(conn, owner_id, task_id, now):
            return None
        conn.execute(
            "DELETE FROM attachments WHERE id = ? AND task_id = ?",
            (attachment_id, task_id),
        )
        return _fetch_task(conn, owner_id, task_id)


# --- Administrative (cross-owner) ---


def list_expired_trash(cutoff: str) -> List[Tuple[str, str]]:
    """
    (task_id, owner_id) pairs for trashed tasks deleted before `cutoff`.

    Note:
        Crosses owner boundaries. Only the retention sweeper calls this.
    """
    with _db() as conn:
        rows = conn.execute(
            """
            SELECT id, owner_id FROM tasks
            WHERE is_deleted = 1 AND deleted_at < ?
            ORDER BY deleted_at ASC
            """,
            (cutoff,),
        ).fetchall()
        return [(row["id"], row["owner_id"]) for row in rows]


def purge_trashed(task_id: str) -> bool:
    """
    Permanently delete one trashed task regardless of owner.

    Returns:
        True if removed; False if it was already gone or was restored meanwhile
    """
    with _db() as conn:
        cursor = conn.execute(
            "DELETE FROM tasks WHERE id = ? AND is_deleted = 1",
            (task_id,),
        )
        return cursor.rowcount > 0
