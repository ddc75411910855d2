"""
FILE: duely/formatting.py
PURPOSE: Shared formatting utilities for CLI and REPL output
EXPORTS:
  - TaskFormatter: Class for formatting tasks
  - short_id(task_id) -> str
  - parse_task_ids(id_string) -> List[str]
  - print_json(console, data) -> None
DEPENDENCIES:
  - rich (tables, panels)
  - json (serialization)
  - duely.core.models (Task)
  - duely.core.status (derive_status)
  - duely.core.sweeper (days_until_purge)
NOTES:
  - Centralized formatting logic for consistency
  - Used by both CLI and REPL
  - Status is derived at format time, never read from storage
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core.models import Task
from .core.sweeper import days_until_purge
from .core.status import derive_status
from .utils import parse_timestamp, strip_markdown

SHORT_ID_LENGTH = 8

STATUS_STYLES = {
    "overdue": "bold red",
    "urgent": "red",
    "approaching": "yellow",
    "on-track": "green",
    "pending": "dim",
}

PRIORITY_STYLES = {
    "high": "red",
    "medium": "yellow",
    "low": "green",
}


def short_id(task_id: str) -> str:
    """First characters of an id, enough to type back at the CLI."""
    return task_id[:SHORT_ID_LENGTH]


def _short_date(value: Optional[str]) -> str:
    if not value:
        return "-"
    return parse_timestamp(value).strftime("%Y-%m-%d %H:%M")


def _purge_countdown(days: Optional[int]) -> str:
    if days is None:
        return "-"
    if days == 0:
        return "[red]next sweep[/red]"
    return f"{days} day" + ("" if days == 1 else "s")


def print_json(console: Console, data: Any) -> None:
    """Print JSON without Rich markup, highlighting or wrapping."""
    console.print(
        json.dumps(data, indent=2),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


class TaskFormatter:
    """Centralized task display formatting."""

    @staticmethod
    def create_table(
        tasks: List[Task],
        title: str = "Tasks",
        now: Optional[datetime] = None,
        show_order: bool = False,
    ) -> Table:
        """
        Create Rich table for active tasks.

        Args:
            tasks: Tasks to display (in the order given)
            title: Table title
            now: Reference time for status derivation
            show_order: Whether to show the manual order column

        Returns:
            Rich Table object ready for display
        """
        now = now or datetime.now()
        table = Table(title=title, show_header=True, header_style="bold cyan")
        if show_order:
            table.add_column("#", style="dim", width=4, no_wrap=True)
        table.add_column("ID", style="cyan", width=SHORT_ID_LENGTH, no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Status", width=11)
        table.add_column("Priority", width=8)
        table.add_column("Due", style="blue", no_wrap=True)
        table.add_column("Files", style="dim", width=5)

        for task in tasks:
            status = derive_status(task, now)
            status_style = STATUS_STYLES.get(status, "white")
            priority_style = PRIORITY_STYLES.get(task.priority, "white")
            title_text = f"[strike dim]{escape(task.title)}[/strike dim]" if task.completed else escape(task.title)
            row = []
            if show_order:
                row.append(str(task.order))
            row.extend([
                short_id(task.id),
                f"[{task.color}]●[/{task.color}] {title_text}",
                f"[{status_style}]{status}[/{status_style}]",
                f"[{priority_style}]{task.priority}[/{priority_style}]",
                _short_date(task.end_date),
                str(len(task.files)) if task.files else "-",
            ])
            table.add_row(*row)

        return table

    @staticmethod
    def create_trash_table(
        tasks: List[Task],
        title: str = "Trash",
        retention_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Table:
        """Create Rich table for trashed tasks (deleted_at and days left before purge)."""
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan", width=SHORT_ID_LENGTH, no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Priority", width=8)
        table.add_column("Deleted", style="red", no_wrap=True)
        table.add_column("Purged in", justify="right", no_wrap=True)

        for task in tasks:
            priority_style = PRIORITY_STYLES.get(task.priority, "white")
            table.add_row(
                short_id(task.id),
                escape(task.title),
                f"[{priority_style}]{task.priority}[/{priority_style}]",
                _short_date(task.deleted_at),
                _purge_countdown(days_until_purge(task, retention_days, now)),
            )

        return table

    @staticmethod
    def create_detail_panel(task: Task, now: Optional[datetime] = None) -> Panel:
        """Full task details as a Rich panel."""
        status = derive_status(task, now)
        status_style = STATUS_STYLES.get(status, "white")
        lines = [
            f"[bold]{escape(task.title)}[/bold]",
            "",
            f"[dim]ID:[/dim]        {task.id}",
            f"[dim]Status:[/dim]    [{status_style}]{status}[/{status_style}]"
            + (" [green](completed)[/green]" if task.completed else ""),
            f"[dim]Priority:[/dim]  {task.priority}",
            f"[dim]Color:[/dim]     [{task.color}]●[/{task.color}] {task.color}",
            f"[dim]Start:[/dim]     {_short_date(task.start_date)}",
            f"[dim]Due:[/dim]       {_short_date(task.end_date)}",
            f"[dim]State:[/dim]     {task.state}"
            + (f" (since {_short_date(task.deleted_at)})" if task.is_deleted else ""),
        ]
        if task.description:
            lines.extend(["", escape(task.description)])
        if task.files:
            lines.append("")
            lines.append("[dim]Files:[/dim]")
            for f in task.files:
                lines.append(f"  {short_id(f.id)}  {escape(f.name)} ({f.mime_type}, {f.size} bytes)")

        return Panel("\n".join(lines), title=short_id(task.id), border_style="cyan")

    @staticmethod
    def to_json_dict(task: Task, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Convert single task to JSON-serializable dict, with derived status.

        Args:
            task: Task to serialize
            now: Reference time for status derivation
        """
        data = task.to_dict()
        data["status"] = derive_status(task, now)
        return data

    @staticmethod
    def to_trash_json_dict(
        task: Task, retention_days: Optional[int] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Serialize a trashed task with the days left before it is purged."""
        data = task.to_dict()
        data["days_until_purge"] = days_until_purge(task, retention_days, now)
        return data

    @staticmethod
    def to_json_array(tasks: List[Task], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = now or datetime.now()
        return [TaskFormatter.to_json_dict(t, now) for t in tasks]

    @staticmethod
    def to_raw_lines(tasks: List[Task], now: Optional[datetime] = None) -> List[str]:
        """
        Convert task list to plain text lines.

        Returns:
            One "<id>: [x] <title> (<status>) - <preview>" line per task
        """
        now = now or datetime.now()
        lines = []
        for task in tasks:
            marker = "x" if task.completed else " "
            line = f"{task.id}: [{marker}] {task.title} ({derive_status(task, now)})"
            preview = strip_markdown(task.description)
            if preview:
                line += f" - {preview}"
            lines.append(line)
        return lines


def parse_task_ids(id_string: str) -> List[str]:
    """
    Parse comma-separated task IDs (full ids or short prefixes).

    Args:
        id_string: Comma-separated string of IDs (e.g., "a1b2,c3d4")

    Returns:
        Non-empty, stripped id strings in the given order
    """
    return [part.strip() for part in id_string.split(",") if part.strip()]
