"""
FILE: duely/cli/main.py
PURPOSE: Typer-based CLI for one-shot task management commands
EXPORTS:
  - app (Typer application, from duely.cli.app)
  - main() (entry point)
  - Task commands: add, ls, show, edit, done, cal, mv, reorder, attach, detach
  - Trash commands: rm, trash, restore, purge, empty
  - System commands: version, help, repl, sweep
DEPENDENCIES:
  - typer (CLI framework)
  - duely.config (settings, identity)
  - duely.logging_setup (logging configuration)
  - duely.repl (interactive mode)
NOTES:
  - Most commands support --json and --raw flags
  - Error messages go to stderr
  - Exit codes: 0=success, 1=error
  - Identity comes from --user or DUELY_USER; without it commands fail with
    a distinct "not signed in" message
  - `sweep` is administrative and ignores the identity entirely
"""

import sys
from typing import Optional

# Fix Windows console encoding for Unicode characters
if sys.platform == "win32":
    import io
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8')

import typer

from ..config import current_owner_id, get_settings
from ..logging_setup import setup_logging
from .app import app, error_console, set_user_override


@app.callback(invoke_without_command=True)
def default_command(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(
        None, "--user", "-u", help="Owner identity (defaults to $DUELY_USER)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    Default callback - configures logging and identity.

    If no subcommand is invoked (just 'duely'), launch the REPL.
    """
    settings = get_settings()
    setup_logging(
        console_level="DEBUG" if verbose else settings.log_level,
        log_dir=settings.log_dir,
    )
    set_user_override(user)

    if ctx.invoked_subcommand is None:
        from ..repl import main as repl_main
        try:
            repl_main(owner_id=current_owner_id(user))
        except Exception as e:
            error_console.print(f"[red]Error starting REPL:[/red] {e}")
            raise typer.Exit(1)


# Import command modules to register commands with app
from . import commands  # noqa: E402,F401


def main():
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
