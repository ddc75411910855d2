"""
FILE: duely/cli/commands/trash.py
PURPOSE: Trash lifecycle commands (rm, trash, restore, purge, empty)
"""

import typer

from ..app import app, console, error_console, current_owner, fail
from ...config import get_settings
from ...core import service
from ...core.sweeper import days_until_purge
from ...core.exceptions import DuelyError
from ...formatting import TaskFormatter, parse_task_ids, print_json, short_id


@app.command()
def rm(
    task_ids: str = typer.Argument(..., help="Task ID(s) to move to trash (comma-separated)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Move one or more tasks to the trash.

    Trashed tasks can be restored, and are purged after the retention window.

    Example:
        duely rm 3f2a9c
        duely rm 3f2a9c,81bd07
    """
    try:
        owner_id = current_owner()
    except DuelyError as e:
        fail(e)

    trashed = []
    errors = []
    for ref in parse_task_ids(task_ids):
        try:
            task = service.find_task(owner_id, ref)
            trashed.append(service.soft_delete(owner_id, task.id))
        except DuelyError as e:
            errors.append(str(e))

    if json_output:
        print_json(console, [{"id": t.id, "title": t.title, "deleted_at": t.deleted_at} for t in trashed])
    else:
        for task in trashed:
            console.print(f"[red]🗑[/red] Moved to trash: {short_id(task.id)} {task.title}")

    for error in errors:
        error_console.print(f"[red]Error:[/red] {error}")
    if errors and not trashed:
        raise typer.Exit(1)


@app.command()
def trash(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    List trashed tasks, most recently deleted first.

    Example:
        duely trash
    """
    try:
        tasks = service.list_trashed(current_owner())
        retention_days = get_settings().retention_days

        if json_output:
            print_json(console, [TaskFormatter.to_trash_json_dict(t, retention_days) for t in tasks])
        elif raw:
            for task in tasks:
                days = days_until_purge(task, retention_days)
                console.print(
                    f"{task.id}: {task.title} (deleted {task.deleted_at}, purged in {days} day(s))",
                    markup=False, highlight=False,
                )
        elif not tasks:
            console.print("[dim]Trash is empty[/dim]")
        else:
            console.print(TaskFormatter.create_trash_table(tasks, retention_days=retention_days))
            console.print(f"\n[dim]Total: {len(tasks)} task(s) in trash[/dim]")

    except DuelyError as e:
        fail(e)


@app.command()
def restore(
    task_id: str = typer.Argument(..., help="Trashed task ID (or unique prefix)"),
):
    """
    Restore a task from the trash to the end of the active list.

    Example:
        duely restore 3f2a9c
    """
    try:
        owner_id = current_owner()
        task = service.restore(owner_id, service.find_task(owner_id, task_id).id)
        console.print(f"[green]↺[/green] Restored: {short_id(task.id)} {task.title}")

    except DuelyError as e:
        fail(e)


@app.command()
def purge(
    task_id: str = typer.Argument(..., help="Trashed task ID (or unique prefix)"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompt"),
):
    """
    Permanently delete a trashed task. Active tasks must be trashed first.

    Example:
        duely purge 3f2a9c --yes
    """
    try:
        owner_id = current_owner()
        task = service.find_task(owner_id, task_id)

        if not yes:
            if not typer.confirm(f"Permanently delete '{task.title}'?", default=False):
                console.print("[yellow]Cancelled[/yellow]")
                raise typer.Exit(0)

        service.permanent_delete(owner_id, task.id)
        console.print(f"[red]✗[/red] Permanently deleted: {short_id(task.id)} {task.title}")

    except DuelyError as e:
        fail(e)


@app.command()
def empty(
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompt"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Permanently delete everything in the trash.

    Example:
        duely empty --yes
    """
    try:
        owner_id = current_owner()

        if not yes:
            count = len(service.list_trashed(owner_id))
            if count == 0:
                console.print("[dim]Trash is already empty[/dim]")
                return
            if not typer.confirm(f"Permanently delete {count} task(s)?", default=False):
                console.print("[yellow]Cancelled[/yellow]")
                raise typer.Exit(0)

        deleted = service.empty_trash(owner_id)

        if json_output:
            print_json(console, {"deleted_count": deleted})
        else:
            console.print(f"[green]✓ Trash emptied:[/green] {deleted} task(s) permanently deleted")

    except DuelyError as e:
        fail(e)
