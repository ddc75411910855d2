"""
FILE: duely/cli/commands/system.py
PURPOSE: System commands (version, help, repl, sweep)
"""

from typing import Optional

import typer

from ..app import app, console, fail, _cli_state
from ... import __version__
from ...config import current_owner_id, get_settings
from ...core import sweeper
from ...core.exceptions import DuelyError
from ...formatting import print_json


@app.command()
def version():
    """Show Duely version."""
    console.print(f"Duely v{__version__}")


@app.command()
def help():
    """Show available commands and usage."""
    console.print("\n[bold cyan]Duely[/bold cyan] - Deadline-aware personal task manager\n")
    console.print(f"[dim]Version {__version__}[/dim]\n")

    console.print("[bold]Usage:[/bold]")
    console.print("  duely [--user NAME] [command] [options]")
    console.print("  duely                    [dim]# Launch interactive REPL (default)[/dim]\n")

    console.print("[bold]Commands:[/bold]")

    commands = [
        ("add", "Create a new task", 'duely add "Title" --due 2025-01-10'),
        ("ls", "List open tasks", "duely ls [--completed] [--status urgent] [-q text]"),
        ("show", "View full task details", "duely show <id>"),
        ("edit", "Update task fields", 'duely edit <id> --title "New" --due 2025-01-12'),
        ("done", "Toggle completion", "duely done <id>[,<id>...]"),
        ("cal", "Tasks on a given day", "duely cal 2025-01-09"),
        ("mv", "Move a task onto another's position", "duely mv <id> <over_id>"),
        ("reorder", "Set the full manual order", "duely reorder <id>,<id>,..."),
        ("attach", "Attach a file descriptor", "duely attach <id> --name f.pdf --ref blob:1"),
        ("detach", "Remove an attachment", "duely detach <id> <attachment_id>"),
        ("rm", "Move task(s) to trash", "duely rm <id>[,<id>...]"),
        ("trash", "List trashed tasks", "duely trash"),
        ("restore", "Restore a trashed task", "duely restore <id>"),
        ("purge", "Permanently delete a trashed task", "duely purge <id> --yes"),
        ("empty", "Empty the trash", "duely empty --yes"),
        ("sweep", "Purge trash older than N days (admin)", "duely sweep --days 30"),
        ("repl", "Launch interactive REPL", "duely repl"),
        ("version", "Show version", "duely version"),
        ("help", "Show this help message", "duely help"),
    ]

    for cmd, desc, example in commands:
        console.print(f"  [green]{cmd:8}[/green] {desc}")
        console.print(f"           [dim]{example}[/dim]\n")

    console.print("[bold]Global Options:[/bold]")
    console.print("  [yellow]--user[/yellow]    Owner identity (or set DUELY_USER)")
    console.print("  [yellow]--json[/yellow]    Output as JSON (for scripting)")
    console.print("  [yellow]--raw[/yellow]     Plain text output (no colors)")
    console.print("  [yellow]--help[/yellow]    Show detailed help for a command\n")


@app.command()
def repl():
    """Launch interactive REPL mode."""
    from ...repl import main as repl_main
    repl_main(owner_id=current_owner_id(_cli_state["user"]))


@app.command()
def sweep(
    days: Optional[int] = typer.Option(
        None, "--days", help="Retention window in days (default: $DUELY_RETENTION_DAYS or 30)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Permanently delete trashed tasks older than the retention window.

    Administrative: applies to every user's trash. Safe to re-run.

    Example:
        duely sweep
        duely sweep --days 7 --json
    """
    retention_days = days if days is not None else get_settings().retention_days
    try:
        purged = sweeper.sweep(retention_days)
    except DuelyError as e:
        fail(e)

    if json_output:
        print_json(console, {"purged_count": purged, "retention_days": retention_days})
    else:
        console.print(f"[green]✓ Sweep complete:[/green] {purged} task(s) purged "
                      f"(older than {retention_days} day(s) in trash)")
