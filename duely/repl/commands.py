"""
FILE: duely/repl/commands.py
PURPOSE: REPL command handlers, all working through the session's TaskStore
EXPORTS:
  - console (shared rich Console)
  - resolve_task(tasks, ref) -> Optional[Task]
  - handle_*_command(store, result) handlers
  - HANDLERS (command name -> handler)
DEPENDENCIES:
  - rich (formatted output)
  - duely.sync (TaskStore)
  - duely.formatting (tables, panels, short ids)
  - duely.repl.parser (ParseResult)
NOTES:
  - Handlers never raise DuelyError: failures land on store.error and are
    printed by report_failure()
  - Short ids are resolved against the session cache, not the database
  - Identity changes go through store.bind_owner (login/logout)
"""

from typing import Callable, Dict, List, Optional

from rich.console import Console

from ..config import get_settings
from ..core import service
from ..core.exceptions import DuelyError
from ..core.models import Task, TaskPatch
from ..core.status import filter_by_status, sort_by_urgency
from ..formatting import TaskFormatter, parse_task_ids, short_id
from ..sync import TaskStore
from .parser import ParseResult

console = Console()


def ask_confirmation(message: str) -> bool:
    """Ask user for confirmation (y/n)."""
    response = input(f"{message} (y/n): ").strip().lower()
    return response in ("y", "yes")


def report_failure(store: TaskStore) -> None:
    """Print the store's last error, styled by its kind."""
    if store.error_kind == "unauthorized":
        console.print(f"[yellow]Not signed in:[/yellow] {store.error}")
        console.print("[dim]Use 'login <name>' first[/dim]")
    elif store.error:
        console.print(f"[red]Error:[/red] {store.error}")


def resolve_task(tasks: List[Task], ref: str) -> Optional[Task]:
    """
    Find a cached task by full id or unique id prefix.

    Prints a message and returns None when nothing (or more than one task)
    matches.
    """
    ref = ref.strip().lstrip("#")
    for task in tasks:
        if task.id == ref:
            return task
    matches = [t for t in tasks if t.id.startswith(ref)] if ref else []
    if len(matches) == 1:
        return matches[0]
    if matches:
        console.print(f"[red]Error:[/red] Ambiguous id '{ref}' matches {len(matches)} tasks")
    else:
        console.print(f"[red]Error:[/red] Task {ref} not found")
    return None


def _require_signed_in(store: TaskStore) -> bool:
    if store.owner_id is None:
        console.print("[yellow]Not signed in.[/yellow] [dim]Use 'login <name>' first[/dim]")
        return False
    return True


def _patch_from_flags(result: ParseResult) -> TaskPatch:
    return TaskPatch(
        title=result.text_flag("title"),
        description=result.text_flag("desc"),
        start_date=result.text_flag("start"),
        end_date=result.text_flag("due"),
        priority=result.text_flag("priority"),
        color=result.text_flag("color"),
    )


# --- Task handlers ---


def handle_add_command(store: TaskStore, result: ParseResult) -> None:
    """
    Usage:
        add Write report --due 2025-01-10
        add "Plan trip" --start 2025-02-01 --due 2025-02-14 --priority high
    """
    if not result.args:
        console.print("[red]Error:[/red] Task title required")
        console.print("[dim]Usage: add <title> [--due DATE] [--start DATE] [--priority P][/dim]")
        return

    fields = {
        "description": result.text_flag("desc"),
        "start_date": result.text_flag("start"),
        "end_date": result.text_flag("due"),
    }
    for flag, key in (("priority", "priority"), ("color", "color")):
        value = result.text_flag(flag)
        if value is not None:
            fields[key] = value

    task = store.create(" ".join(result.args), **fields)
    if task is None:
        report_failure(store)
        return
    console.print(f"[green]✓ Created task [bold]{short_id(task.id)}[/bold]:[/green] {task.title}")


def handle_ls_command(store: TaskStore, result: ParseResult) -> None:
    """
    Usage:
        ls
        ls --completed
        ls --status urgent
        ls --search report
        ls --urgency
    """
    if not _require_signed_in(store):
        return

    completed = bool(result.flag("completed", False))
    tasks = store.completed_tasks() if completed else store.pending_tasks()

    query = (result.text_flag("search") or "").strip().lower()
    if query:
        tasks = [
            t for t in tasks
            if query in t.title.lower() or query in (t.description or "").lower()
        ]

    status = result.text_flag("status")
    by_urgency = bool(query or status or result.flag("urgency", False))
    if status and not completed:
        try:
            tasks = filter_by_status(tasks, status)
        except DuelyError as e:
            console.print(f"[red]Error:[/red] {e}")
            return
    if by_urgency:
        tasks = sort_by_urgency(tasks)

    if not tasks:
        console.print("[dim]No tasks found[/dim]")
        return
    title = "Completed" if completed else "Tasks"
    console.print(TaskFormatter.create_table(tasks, title=title, show_order=not by_urgency))


def handle_cal_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: cal <YYYY-MM-DD>"""
    if not result.args:
        console.print("[red]Error:[/red] Date required (YYYY-MM-DD)")
        return
    if not _require_signed_in(store):
        return

    day = result.args[0]
    try:
        tasks = service.filter_by_date(store.tasks, day)
    except DuelyError as e:
        console.print(f"[red]Error:[/red] {e}")
        return

    if not tasks:
        console.print(f"[dim]No tasks on {day}[/dim]")
        return
    console.print(TaskFormatter.create_table(tasks, title=f"Tasks on {day}"))


def handle_show_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: show <id>"""
    if not result.args:
        console.print("[red]Error:[/red] Task ID required")
        return
    task = resolve_task(store.tasks + store.trashed, result.args[0])
    if task:
        console.print(TaskFormatter.create_detail_panel(task))


def handle_edit_command(store: TaskStore, result: ParseResult) -> None:
    """
    Usage:
        edit <id> --title "New title" --due 2025-01-12
        edit <id> --desc ""
    """
    if not result.args:
        console.print("[red]Error:[/red] Task ID required")
        console.print("[dim]Usage: edit <id> [--title T] [--desc D] [--start DATE] [--due DATE][/dim]")
        return
    task = resolve_task(store.tasks, result.args[0])
    if task is None:
        return

    patch = _patch_from_flags(result)
    if patch.is_empty():
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    updated = store.update(task.id, patch)
    if updated is None:
        report_failure(store)
        return
    console.print(f"[blue]✎[/blue] Updated task {short_id(updated.id)}: {updated.title}")


def handle_done_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: done <id>[,<id>...]"""
    if not result.args:
        console.print("[red]Error:[/red] Task ID required")
        return
    for ref in parse_task_ids(",".join(result.args)):
        task = resolve_task(store.tasks, ref)
        if task is None:
            continue
        toggled = store.toggle_completion(task.id)
        if toggled is None:
            report_failure(store)
        elif toggled.completed:
            console.print(f"[green]✓[/green] Completed: {toggled.title}")
        else:
            console.print(f"[yellow]○[/yellow] Reopened: {toggled.title}")


def handle_mv_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: mv <id> <over_id>"""
    if len(result.args) < 2:
        console.print("[red]Error:[/red] Two task IDs required")
        console.print("[dim]Usage: mv <id> <over_id>[/dim]")
        return
    active = resolve_task(store.tasks, result.args[0])
    over = resolve_task(store.tasks, result.args[1])
    if active is None or over is None:
        return
    if store.move(active.id, over.id):
        console.print(f"[blue]↕[/blue] Moved {short_id(active.id)} to {short_id(over.id)}'s position")
    else:
        report_failure(store)
        console.print("[dim]The new order is kept on screen; run 'refresh' to reload[/dim]")


def handle_reorder_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: reorder <id>,<id>,..."""
    if not result.args:
        console.print("[red]Error:[/red] Task IDs required")
        return
    resolved = []
    for ref in parse_task_ids(",".join(result.args)):
        task = resolve_task(store.tasks, ref)
        if task is not None:
            resolved.append(task.id)
    if not resolved:
        return
    if store.reorder(resolved):
        console.print(f"[blue]↕[/blue] Reordered {len(store.tasks)} task(s)")
    else:
        report_failure(store)
        console.print("[dim]The new order is kept on screen; run 'refresh' to reload[/dim]")


def handle_attach_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: attach <id> --name notes.pdf --ref blob:1234 [--size N] [--type MIME]"""
    name = result.text_flag("name")
    data_ref = result.text_flag("ref")
    if not result.args or not name or not data_ref:
        console.print("[red]Error:[/red] Task ID, --name and --ref required")
        return
    task = resolve_task(store.tasks, result.args[0])
    if task is None:
        return

    try:
        size = int(result.text_flag("size") or 0)
    except ValueError:
        console.print("[red]Error:[/red] --size must be a number of bytes")
        return
    try:
        attachment = service.new_attachment(
            name, size, result.text_flag("type") or "application/octet-stream", data_ref
        )
    except DuelyError as e:
        console.print(f"[red]Error:[/red] {e}")
        return

    if store.add_attachment(task.id, attachment) is None:
        report_failure(store)
        return
    console.print(f"[green]📎[/green] Attached {name} ({short_id(attachment.id)}) to {short_id(task.id)}")


def handle_detach_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: detach <id> <attachment_id>"""
    if len(result.args) < 2:
        console.print("[red]Error:[/red] Task ID and attachment ID required")
        return
    task = resolve_task(store.tasks, result.args[0])
    if task is None:
        return
    ref = result.args[1]
    matches = [f for f in task.files if f.id.startswith(ref)]
    attachment_id = matches[0].id if len(matches) == 1 else ref

    if store.remove_attachment(task.id, attachment_id) is None:
        report_failure(store)
        return
    console.print(f"[red]✗[/red] Removed attachment {short_id(attachment_id)} from {short_id(task.id)}")


# --- Trash handlers ---


def handle_rm_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: rm <id>[,<id>...]"""
    if not result.args:
        console.print("[red]Error:[/red] Task ID required")
        return
    for ref in parse_task_ids(",".join(result.args)):
        task = resolve_task(store.tasks, ref)
        if task is None:
            continue
        if store.delete(task.id):
            console.print(f"[red]🗑[/red] Moved to trash: {short_id(task.id)} {task.title}")
        else:
            report_failure(store)


def handle_trash_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: trash"""
    if not store.load_trash():
        report_failure(store)
        return
    if not store.trashed:
        console.print("[dim]Trash is empty[/dim]")
        return
    console.print(TaskFormatter.create_trash_table(
        store.trashed, retention_days=get_settings().retention_days
    ))


def _trashed_task(store: TaskStore, result: ParseResult) -> Optional[Task]:
    if not result.args:
        console.print("[red]Error:[/red] Task ID required")
        return None
    if not store.trash_loaded and not store.load_trash():
        report_failure(store)
        return None
    return resolve_task(store.trashed, result.args[0])


def handle_restore_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: restore <id>"""
    task = _trashed_task(store, result)
    if task is None:
        return
    if store.restore(task.id):
        console.print(f"[green]↺[/green] Restored: {short_id(task.id)} {task.title}")
    else:
        report_failure(store)


def handle_purge_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: purge <id>"""
    task = _trashed_task(store, result)
    if task is None:
        return
    if not ask_confirmation(f"Permanently delete '{task.title}'?"):
        console.print("[yellow]Cancelled[/yellow]")
        return
    if store.permanent_delete(task.id):
        console.print(f"[red]✗[/red] Permanently deleted: {short_id(task.id)} {task.title}")
    else:
        report_failure(store)


def handle_empty_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: empty"""
    if not _require_signed_in(store):
        return
    if not ask_confirmation("Permanently delete everything in the trash?"):
        console.print("[yellow]Cancelled[/yellow]")
        return
    count = store.empty_trash()
    if store.error:
        report_failure(store)
        return
    console.print(f"[green]✓ Trash emptied:[/green] {count} task(s) permanently deleted")


# --- Session handlers ---


def handle_refresh_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: refresh"""
    if store.refresh():
        console.print(f"[dim]Loaded {len(store.tasks)} task(s)[/dim]")
    else:
        report_failure(store)


def handle_login_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: login <name>"""
    if not result.args:
        console.print("[red]Error:[/red] Identity required")
        console.print("[dim]Usage: login <name>[/dim]")
        return
    store.bind_owner(result.args[0])
    if store.error:
        report_failure(store)
        return
    console.print(f"[green]Signed in as[/green] [bold]{store.owner_id}[/bold] "
                  f"[dim]({len(store.tasks)} task(s))[/dim]")


def handle_logout_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: logout"""
    store.bind_owner(None)
    console.print("[dim]Signed out[/dim]")


def handle_whoami_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: whoami"""
    if store.owner_id is None:
        console.print("[dim]Not signed in[/dim]")
    else:
        console.print(f"[bold]{store.owner_id}[/bold]")


def handle_help_command(store: TaskStore, result: ParseResult) -> None:
    """Usage: help"""
    console.print("\n[bold cyan]Duely REPL Commands[/bold cyan]\n")
    sections = [
        ("Tasks", [
            ("add <title> [--due D] [--start D] [--priority P]", "Create a task"),
            ("ls [--completed] [--status S] [--search Q] [--urgency]", "List tasks"),
            ("show <id>", "Show task details"),
            ("cal <YYYY-MM-DD>", "Tasks on a given day"),
            ("edit <id> [--title T] [--desc D] [--due D] ...", "Edit task fields"),
            ("done <id>[,<id>...]", "Toggle completion"),
            ("mv <id> <over_id>", "Move task onto another's position"),
            ("reorder <id>,<id>,...", "Set manual order"),
            ("attach <id> --name N --ref R", "Attach a file descriptor"),
            ("detach <id> <attachment_id>", "Remove an attachment"),
        ]),
        ("Trash", [
            ("rm <id>[,<id>...]", "Move task(s) to trash"),
            ("trash", "Show trash"),
            ("restore <id>", "Restore from trash"),
            ("purge <id>", "Permanently delete from trash"),
            ("empty", "Empty the trash"),
        ]),
        ("Session", [
            ("refresh", "Reload from storage"),
            ("login <name>", "Switch identity"),
            ("logout", "Clear identity and cache"),
            ("whoami", "Show identity"),
            ("clear", "Clear screen"),
            ("exit", "Quit (or Ctrl+D)"),
        ]),
    ]
    for heading, rows in sections:
        console.print(f"[bold]{heading}:[/bold]")
        for usage, description in rows:
            console.print(f"  [green]{usage}[/green]")
            console.print(f"      [dim]{description}[/dim]")
        console.print()


def handle_clear_command(store: TaskStore, result: ParseResult) -> None:
    console.clear()


HANDLERS: Dict[str, Callable[[TaskStore, ParseResult], None]] = {
    "add": handle_add_command,
    "ls": handle_ls_command,
    "cal": handle_cal_command,
    "show": handle_show_command,
    "edit": handle_edit_command,
    "done": handle_done_command,
    "mv": handle_mv_command,
    "reorder": handle_reorder_command,
    "attach": handle_attach_command,
    "detach": handle_detach_command,
    "rm": handle_rm_command,
    "trash": handle_trash_command,
    "restore": handle_restore_command,
    "purge": handle_purge_command,
    "empty": handle_empty_command,
    "refresh": handle_refresh_command,
    "login": handle_login_command,
    "logout": handle_logout_command,
    "whoami": handle_whoami_command,
    "help": handle_help_command,
    "clear": handle_clear_command,
}
