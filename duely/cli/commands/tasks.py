"""
FILE: duely/cli/commands/tasks.py
PURPOSE: Task commands (add, ls, show, edit, done, cal, mv, reorder, attach, detach)
"""

from typing import Optional

import typer

from ..app import app, console, error_console, current_owner, fail
from ...core import service
from ...core import reorder as reorder_engine
from ...core.exceptions import DuelyError
from ...core.models import TaskPatch
from ...formatting import TaskFormatter, parse_task_ids, print_json, short_id


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    description: Optional[str] = typer.Option(None, "--desc", "-d", help="Description (markdown)"),
    start: Optional[str] = typer.Option(None, "--start", "-s", help="Start date (YYYY-MM-DD or ISO)"),
    due: Optional[str] = typer.Option(None, "--due", help="Deadline (YYYY-MM-DD or ISO)"),
    priority: str = typer.Option("medium", "--priority", "-p", help="low, medium or high"),
    color: str = typer.Option("#3b82f6", "--color", "-c", help="Hex color, e.g. #3b82f6"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    Create a new task.

    Example:
        duely add "Write report" --due 2025-01-10
        duely add "Plan trip" --start 2025-02-01 --due 2025-02-14 -p high
    """
    try:
        task = service.create_task(
            current_owner(),
            title,
            description=description,
            start_date=start,
            end_date=due,
            priority=priority,
            color=color,
        )

        if json_output:
            print_json(console, TaskFormatter.to_json_dict(task))
        elif raw:
            console.print(f"{task.id}: {task.title}", markup=False, highlight=False)
        else:
            console.print(f"[green]✓ Created task [bold]{short_id(task.id)}[/bold]:[/green] {task.title}")

    except DuelyError as e:
        fail(e)


@app.command()
def ls(
    completed: bool = typer.Option(False, "--completed", help="Show completed tasks instead"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Filter by title/description text"),
    status: Optional[str] = typer.Option(
        None, "--status", help="overdue, urgent, approaching, on-track or pending"
    ),
    urgency: bool = typer.Option(False, "--urgency", help="Sort by urgency instead of manual order"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    List active tasks (open ones by default), in manual order.

    Filtering by text or status sorts by urgency.

    Example:
        duely ls
        duely ls --status urgent
        duely ls -q report --json
        duely ls --completed
    """
    try:
        owner_id = current_owner()
        if search or status or urgency:
            tasks = service.search_tasks(owner_id, search or "", status=status, completed=completed)
        elif completed:
            tasks = service.list_completed(owner_id)
        else:
            tasks = service.list_pending(owner_id)

        if json_output:
            print_json(console, TaskFormatter.to_json_array(tasks))
        elif raw:
            for line in TaskFormatter.to_raw_lines(tasks):
                console.print(line, markup=False, highlight=False)
        else:
            if not tasks:
                console.print("[dim]No tasks found[/dim]")
                return
            title = "Completed" if completed else "Tasks"
            console.print(TaskFormatter.create_table(tasks, title=title, show_order=not urgency))
            console.print(f"\n[dim]Total: {len(tasks)} task(s)[/dim]")

    except DuelyError as e:
        fail(e)


@app.command()
def show(
    task_id: str = typer.Argument(..., help="Task ID (or unique prefix)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    View full task details, including trashed tasks.

    Example:
        duely show 3f2a9c
    """
    try:
        task = service.find_task(current_owner(), task_id)

        if json_output:
            print_json(console, TaskFormatter.to_json_dict(task))
        else:
            console.print(TaskFormatter.create_detail_panel(task))

    except DuelyError as e:
        fail(e)


@app.command()
def edit(
    task_id: str = typer.Argument(..., help="Task ID (or unique prefix)"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    description: Optional[str] = typer.Option(None, "--desc", "-d", help="New description ('' clears it)"),
    start: Optional[str] = typer.Option(None, "--start", "-s", help="New start date"),
    due: Optional[str] = typer.Option(None, "--due", help="New deadline"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="low, medium or high"),
    color: Optional[str] = typer.Option(None, "--color", "-c", help="Hex color"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Update some fields of a task; unspecified fields are left alone.

    Example:
        duely edit 3f2a9c --title "Write final report" --due 2025-01-12
        duely edit 3f2a9c --desc ""
    """
    try:
        owner_id = current_owner()
        patch = TaskPatch(
            title=title,
            description=description,
            start_date=start,
            end_date=due,
            priority=priority,
            color=color,
        )
        if patch.is_empty():
            error_console.print("[yellow]Nothing to change.[/yellow] Pass --title, --desc, --due, ...")
            raise typer.Exit(1)

        task = service.find_task(owner_id, task_id)
        task = service.update_task(owner_id, task.id, patch)

        if json_output:
            print_json(console, TaskFormatter.to_json_dict(task))
        else:
            console.print(f"[blue]✎[/blue] Updated task {short_id(task.id)}: {task.title}")

    except DuelyError as e:
        fail(e)


@app.command()
def done(
    task_ids: str = typer.Argument(..., help="Task ID(s) to toggle (comma-separated)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Toggle completion of one or more tasks.

    Example:
        duely done 3f2a9c
        duely done 3f2a9c,81bd07
    """
    try:
        owner_id = current_owner()
    except DuelyError as e:
        fail(e)

    toggled = []
    errors = []
    for ref in parse_task_ids(task_ids):
        try:
            task = service.find_task(owner_id, ref)
            toggled.append(service.toggle_completion(owner_id, task.id))
        except DuelyError as e:
            errors.append(str(e))

    if json_output:
        print_json(console, TaskFormatter.to_json_array(toggled))
    else:
        for task in toggled:
            if task.completed:
                console.print(f"[green]✓[/green] Completed: {task.title}")
            else:
                console.print(f"[yellow]○[/yellow] Reopened: {task.title}")

    for error in errors:
        error_console.print(f"[red]Error:[/red] {error}")
    if errors and not toggled:
        raise typer.Exit(1)


@app.command()
def cal(
    day: str = typer.Argument(..., help="Date (YYYY-MM-DD)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List tasks that start, end or are in progress on a given day.

    Example:
        duely cal 2025-01-09
    """
    try:
        tasks = service.tasks_for_date(current_owner(), day)

        if json_output:
            print_json(console, TaskFormatter.to_json_array(tasks))
        elif not tasks:
            console.print(f"[dim]No tasks on {day}[/dim]")
        else:
            console.print(TaskFormatter.create_table(tasks, title=f"Tasks on {day}"))

    except DuelyError as e:
        fail(e)


@app.command()
def mv(
    task_id: str = typer.Argument(..., help="Task to move"),
    over_id: str = typer.Argument(..., help="Task whose position it takes"),
):
    """
    Move a task onto another task's position (drag-and-drop style).

    Moving down places it after the target; moving up places it before.

    Example:
        duely mv 3f2a9c 81bd07
    """
    try:
        owner_id = current_owner()
        active = service.find_task(owner_id, task_id)
        over = service.find_task(owner_id, over_id)
        reorder_engine.move_one(owner_id, active.id, over.id)
        console.print(f"[blue]↕[/blue] Moved {short_id(active.id)} to {short_id(over.id)}'s position")

    except DuelyError as e:
        fail(e)


@app.command()
def reorder(
    task_ids: str = typer.Argument(..., help="Complete new order (comma-separated IDs)"),
):
    """
    Set the manual order of active tasks.

    IDs that aren't your active tasks are skipped.

    Example:
        duely reorder 81bd07,3f2a9c,c0ffee
    """
    try:
        owner_id = current_owner()
        resolved = []
        for ref in parse_task_ids(task_ids):
            try:
                resolved.append(service.find_task(owner_id, ref).id)
            except DuelyError as e:
                error_console.print(f"[yellow]Skipping[/yellow] {ref}: {e}")

        updated = reorder_engine.reorder(owner_id, resolved)
        console.print(f"[blue]↕[/blue] Reordered {updated} task(s)")

    except DuelyError as e:
        fail(e)


@app.command()
def attach(
    task_id: str = typer.Argument(..., help="Task ID"),
    name: str = typer.Option(..., "--name", "-n", help="File name"),
    data_ref: str = typer.Option(..., "--ref", "-r", help="Opaque reference to the stored file"),
    size: int = typer.Option(0, "--size", help="Size in bytes"),
    mime_type: str = typer.Option("application/octet-stream", "--type", help="MIME type"),
):
    """
    Attach a file descriptor to a task.

    Example:
        duely attach 3f2a9c --name notes.pdf --ref blob:1234 --size 2048 --type application/pdf
    """
    try:
        owner_id = current_owner()
        task = service.find_task(owner_id, task_id)
        attachment = service.new_attachment(name, size, mime_type, data_ref)
        service.add_attachment(owner_id, task.id, attachment)
        console.print(f"[green]📎[/green] Attached {name} ({short_id(attachment.id)}) to {short_id(task.id)}")

    except DuelyError as e:
        fail(e)


@app.command()
def detach(
    task_id: str = typer.Argument(..., help="Task ID"),
    attachment_id: str = typer.Argument(..., help="Attachment ID (or unique prefix)"),
):
    """
    Remove an attachment from a task.

    Example:
        duely detach 3f2a9c 9e1b
    """
    try:
        owner_id = current_owner()
        task = service.find_task(owner_id, task_id)
        matches = [f for f in task.files if f.id.startswith(attachment_id)]
        full_id = matches[0].id if len(matches) == 1 else attachment_id
        service.remove_attachment(owner_id, task.id, full_id)
        console.print(f"[red]✗[/red] Removed attachment {short_id(full_id)} from {short_id(task.id)}")

    except DuelyError as e:
        fail(e)
