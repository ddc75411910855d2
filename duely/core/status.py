"""
FILE: duely/core/status.py
PURPOSE: Derive a task's display status from its dates and the current time
EXPORTS:
  - days_until_due(task, now) -> int
  - derive_status(task, now) -> str
  - sort_by_urgency(tasks, now) -> List[Task]
  - filter_by_status(tasks, status, now) -> List[Task]
DEPENDENCIES:
  - datetime, math (stdlib)
  - duely.core.constants (status values, thresholds, URGENCY_RANK)
NOTES:
  - Pure functions; status is computed on every read and never stored
  - A task that hasn't started is always 'pending', whatever its deadline
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .constants import (
    STATUS_PENDING,
    STATUS_ON_TRACK,
    STATUS_APPROACHING,
    STATUS_URGENT,
    STATUS_OVERDUE,
    VALID_STATUSES,
    URGENCY_RANK,
    URGENT_DAYS,
    APPROACHING_DAYS,
)
from .exceptions import ValidationError
from .models import Task
from ..utils import parse_timestamp


_ONE_DAY = timedelta(days=1)


def days_until_due(task: Task, now: Optional[datetime] = None) -> int:
    """Whole days until the deadline, rounded up (negative once a full day late)."""
    now = now or datetime.now()
    end = parse_timestamp(task.end_date, "end date")
    return math.ceil((end - now) / _ONE_DAY)


def derive_status(task: Task, now: Optional[datetime] = None) -> str:
    """
    Classify a task relative to `now`.

    Rules are evaluated in order (boundaries fall in the tighter bucket):
        now < start_date   -> pending
        days < 0           -> overdue
        days <= 2          -> urgent   (due today counts as urgent)
        days <= 7          -> approaching
        otherwise          -> on-track
    """
    now = now or datetime.now()

    if now < parse_timestamp(task.start_date, "start date"):
        return STATUS_PENDING

    days = days_until_due(task, now)
    if days < 0:
        return STATUS_OVERDUE
    if days <= URGENT_DAYS:
        return STATUS_URGENT
    if days <= APPROACHING_DAYS:
        return STATUS_APPROACHING
    return STATUS_ON_TRACK


def sort_by_urgency(tasks: Iterable[Task], now: Optional[datetime] = None) -> List[Task]:
    """Stable sort: overdue, urgent, approaching, on-track, pending."""
    now = now or datetime.now()
    return sorted(tasks, key=lambda t: URGENCY_RANK[derive_status(t, now)])


def filter_by_status(
    tasks: Iterable[Task], status: str, now: Optional[datetime] = None
) -> List[Task]:
    """
    Keep tasks whose derived status equals `status`.

    Raises:
        ValidationError: If status is not a known status value
    """
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}"
        )
    now = now or datetime.now()
    return [t for t in tasks if derive_status(t, now) == status]
