"""
FILE: duely/core/sweeper.py
PURPOSE: Purge trashed tasks older than the retention window (all owners)
EXPORTS:
  - retention_cutoff(retention_days, now) -> datetime
  - days_until_purge(task, retention_days, now) -> Optional[int]
  - sweep(retention_days, now) -> int
DEPENDENCIES:
  - duely.core.repository (list_expired_trash, purge_trashed)
  - duely.core.models (Task)
  - duely.config (default retention window)
NOTES:
  - Administrative only: exposed through `duely sweep`, never a user session
  - Each record is purged in its own transaction; a failure is logged and
    skipped, so an interrupted sweep is safe to re-run
  - Purge is guarded by is_deleted = 1, so a restore that wins the race keeps
    the task
"""

import logging
import math
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from . import repository
from .exceptions import DuelyError, ValidationError
from .models import Task
from ..config import get_settings
from ..utils import now_iso, parse_timestamp

logger = logging.getLogger(__name__)


def retention_cutoff(retention_days: int, now: Optional[datetime] = None) -> datetime:
    """Tasks deleted strictly before this moment are expired."""
    if retention_days is None or retention_days < 0:
        raise ValidationError("Retention window must be zero or more days")
    return (now or datetime.now()) - timedelta(days=retention_days)


def days_until_purge(
    task: Task, retention_days: Optional[int] = None, now: Optional[datetime] = None
) -> Optional[int]:
    """
    Whole days left before a trashed task is swept (never below 0).

    Returns None for tasks that are not in the trash.
    """
    if not task.is_deleted or not task.deleted_at:
        return None
    if retention_days is None:
        retention_days = get_settings().retention_days

    expires = parse_timestamp(task.deleted_at, "deleted_at") + timedelta(days=retention_days)
    remaining = expires - (now or datetime.now())
    return max(0, math.ceil(remaining / timedelta(days=1)))


def sweep(retention_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """
    Permanently delete trashed tasks whose deleted_at is past the window.

    Args:
        retention_days: Window in days (defaults to DUELY_RETENTION_DAYS, 30)
        now: Reference time (defaults to the current time)

    Returns:
        Number of tasks purged by this run
    """
    if retention_days is None:
        retention_days = get_settings().retention_days
    cutoff = retention_cutoff(retention_days, now)

    expired = repository.list_expired_trash(now_iso(cutoff))
    logger.debug("Sweep found %d expired task(s) before %s", len(expired), cutoff)

    purged = 0
    for task_id, owner_id in expired:
        try:
            if repository.purge_trashed(task_id):
                purged += 1
                logger.info("Purged task %s (owner %s) after %d day(s) in trash",
                            task_id, owner_id, retention_days)
        except (DuelyError, sqlite3.Error):
            logger.exception("Failed to purge task %s; skipping", task_id)

    logger.info("Sweep complete: %d of %d expired task(s) purged", purged, len(expired))
    return purged
