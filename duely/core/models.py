"""
FILE: duely/core/models.py
PURPOSE: Domain models for tasks, attachments and partial updates
EXPORTS:
  - Attachment (dataclass)
  - Task (dataclass)
  - TaskPatch (dataclass)
DEPENDENCIES:
  - dataclasses (stdlib)
  - json (stdlib)
  - typing (stdlib)
  - duely.core.constants, duely.core.exceptions
NOTES:
  - Task and Attachment have from_row() for SQLite row conversion
  - All models have to_dict()/to_json() for serialization
  - Optional fields use None as default
  - Timestamps stored as ISO-8601 strings
  - Derived status is NOT a field; see duely.core.status
"""

from dataclasses import dataclass, asdict, field, fields
from typing import Any, Dict, List, Optional
import json

from .constants import (
    DEFAULT_COLOR,
    DEFAULT_PRIORITY,
    VALID_PRIORITIES,
    STATE_ACTIVE,
    STATE_TRASHED,
)
from .exceptions import ValidationError
from ..utils import normalize_timestamp, validate_color


@dataclass
class Attachment:
    """A file attached to a task. `data_ref` is opaque to the core."""

    id: str
    name: str
    size: int
    mime_type: str
    data_ref: str
    uploaded_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Attachment":
        """Convert SQLite row to Attachment object."""
        return cls(
            id=row["id"],
            name=row["name"],
            size=row["size"],
            mime_type=row["mime_type"],
            data_ref=row["data_ref"],
            uploaded_at=row["uploaded_at"],
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attachment":
        return cls(**{f.name: data.get(f.name) for f in fields(cls)})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Task:
    """A task with a date range, priority, color, attachments and trash flags."""

    id: str
    owner_id: str
    title: str
    start_date: str
    end_date: str
    description: Optional[str] = None
    priority: str = DEFAULT_PRIORITY
    color: str = DEFAULT_COLOR
    files: List[Attachment] = field(default_factory=list)
    completed: bool = False
    is_deleted: bool = False
    deleted_at: Optional[str] = None
    order: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row, files: Optional[List[Attachment]] = None) -> "Task":
        """Convert SQLite row (plus its attachment rows) to Task object."""
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            description=row["description"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            priority=row["priority"],
            color=row["color"],
            files=list(files or []),
            completed=bool(row["completed"]),
            is_deleted=bool(row["is_deleted"]),
            deleted_at=row["deleted_at"],
            order=row["sort_order"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def state(self) -> str:
        """Lifecycle state of a persisted task (purged tasks no longer exist)."""
        return STATE_TRASHED if self.is_deleted else STATE_ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        """Serialize task to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


@dataclass
class TaskPatch:
    """
    Partial update for a task.

    Every field left as None is "not supplied" and will not be touched.
    Use clear_description=True to blank the description explicitly.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    clear_description: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    priority: Optional[str] = None
    color: Optional[str] = None
    completed: Optional[bool] = None
    files: Optional[List[Attachment]] = None

    def is_empty(self) -> bool:
        return not self.changes()

    def validate(self) -> "TaskPatch":
        """
        Validate and normalize supplied fields.

        Returns:
            A new, normalized TaskPatch

        Raises:
            ValidationError: On empty title, unknown priority, bad color or date
        """
        title = self.title
        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationError("Task title cannot be empty")

        priority = self.priority
        if priority is not None:
            priority = priority.strip().lower()
            if priority not in VALID_PRIORITIES:
                raise ValidationError(
                    f"Invalid priority '{self.priority}'. Must be one of: {', '.join(VALID_PRIORITIES)}"
                )

        description = self.description
        if description is not None:
            description = description.strip() or None

        return TaskPatch(
            title=title,
            description=description,
            clear_description=self.clear_description or (self.description is not None and description is None),
            start_date=normalize_timestamp(self.start_date, "start date") if self.start_date is not None else None,
            end_date=normalize_timestamp(self.end_date, "end date") if self.end_date is not None else None,
            priority=priority,
            color=validate_color(self.color) if self.color is not None else None,
            completed=self.completed,
            files=list(self.files) if self.files is not None else None,
        )

    def changes(self) -> Dict[str, Any]:
        """Supplied column values keyed by Task field name (files excluded)."""
        values: Dict[str, Any] = {}
        for name in ("title", "start_date", "end_date", "priority", "color", "completed"):
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        if self.description is not None or self.clear_description:
            values["description"] = self.description
        if self.files is not None:
            values["files"] = self.files
        return values

    def apply_to(self, task: Task) -> Task:
        """Return a copy of `task` with this patch's supplied fields applied."""
        data = task.to_dict()
        data["files"] = list(task.files)
        data.update(self.changes())
        return Task(**data)
