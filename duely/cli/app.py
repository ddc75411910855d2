"""
FILE: duely/cli/app.py
PURPOSE: Shared Typer app, consoles and identity helpers for CLI commands
EXPORTS:
  - app (Typer application)
  - console / error_console (Rich consoles)
  - set_user_override(user) -> None
  - current_owner() -> str
  - fail(error) -> NoReturn
DEPENDENCIES:
  - typer (CLI framework)
  - rich (formatted output)
  - duely.config (identity)
NOTES:
  - Command modules register on `app` from here, so running
    `python -m duely.cli.main` never builds a second app
"""

from typing import NoReturn, Optional

import typer
from rich.console import Console

from ..config import current_owner_id
from ..core.exceptions import DuelyError, UnauthorizedError

# Typer app setup
app = typer.Typer(
    name="duely",
    help="Deadline-aware personal task manager",
    add_completion=False,
)

# Rich console for formatted output
console = Console()
error_console = Console(stderr=True)

# Identity override from the global --user option
_cli_state = {"user": None}


def set_user_override(user: Optional[str]) -> None:
    _cli_state["user"] = user


def current_owner() -> str:
    """
    Resolve the owner identity for this invocation.

    Raises:
        UnauthorizedError: If neither --user nor DUELY_USER is set
    """
    owner_id = current_owner_id(_cli_state["user"])
    if owner_id is None:
        raise UnauthorizedError("No user identity. Set DUELY_USER or pass --user")
    return owner_id


def fail(error: DuelyError) -> NoReturn:
    """Print a DuelyError to stderr and exit with status 1."""
    if isinstance(error, UnauthorizedError):
        error_console.print(f"[yellow]Not signed in:[/yellow] {error}")
    else:
        error_console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)
