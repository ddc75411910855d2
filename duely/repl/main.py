"""
FILE: duely/repl/main.py
PURPOSE: Interactive REPL for task management with prompt-toolkit
EXPORTS:
  - main(owner_id) - Entry point for REPL mode
  - run_repl(store) - Main REPL loop
  - execute_command(store, result) -> bool
DEPENDENCIES:
  - prompt_toolkit (REPL interface, history, completion)
  - rich (formatted output)
  - duely.sync (TaskStore, LocalBackend)
  - duely.repl.parser (command parsing)
  - duely.repl.completer (autocomplete)
  - duely.repl.commands (handlers)
NOTES:
  - One TaskStore per REPL session, created in main() and passed down
  - Command history automatic with PromptSession
  - Bottom toolbar shows identity and open/urgent counts from the cache
  - Ctrl+D or "exit"/"quit" to exit
  - Falls back to plain input() when stdin/stdout is not a TTY
"""

import logging
import sys
from collections import Counter
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory

from ..core.constants import STATUS_OVERDUE, STATUS_URGENT
from ..sync import LocalBackend, TaskStore
from .commands import HANDLERS, console, report_failure
from .completer import create_completer
from .parser import ParseResult, parse_command

logger = logging.getLogger(__name__)


def prompt_text(store: TaskStore) -> str:
    """Plain prompt: "duely> " or "duely:[alice]> "."""
    if store.owner_id:
        return f"duely:[{store.owner_id}]> "
    return "duely> "


def format_prompt(store: TaskStore) -> HTML:
    if store.owner_id:
        return HTML("<b>duely:[<cyan>{}</cyan>]&gt; </b>").format(store.owner_id)
    return HTML("<b>duely&gt; </b>")


def get_bottom_toolbar(store: TaskStore) -> HTML:
    """Counts come from the session cache; nothing is fetched here."""
    if store.owner_id is None:
        return HTML(" Not signed in  |  login &lt;name&gt; to start ")

    counts = Counter(view.status for view in store.views() if not view.task.completed)
    parts = [f" {len(store.pending_tasks())} open"]
    if counts[STATUS_OVERDUE]:
        parts.append(f"<ansired>{counts[STATUS_OVERDUE]} overdue</ansired>")
    if counts[STATUS_URGENT]:
        parts.append(f"<ansiyellow>{counts[STATUS_URGENT]} urgent</ansiyellow>")
    if store.error:
        parts.append("<ansired>last action failed</ansired>")
    return HTML("  |  ".join(parts) + " ")


def execute_command(store: TaskStore, result: ParseResult) -> bool:
    """
    Execute a parsed command.

    Args:
        store: The session's task store
        result: Parsed command from parser

    Returns:
        True to continue REPL loop, False to exit
    """
    command = result.command.lower()

    if command in ("exit", "quit"):
        console.print("[dim]Goodbye![/dim]")
        return False

    if not command:
        return True

    handler = HANDLERS.get(command)
    if handler:
        handler(store, result)
        console.print()
    else:
        console.print(f"[red]Unknown command:[/red] {command}")
        console.print("[dim]Type 'help' for available commands[/dim]")
        console.print()

    return True


def run_repl(store: TaskStore) -> None:
    """
    Main REPL loop.

    Exits on Ctrl+D (EOFError) or the "exit"/"quit" commands; Ctrl+C only
    cancels the current line.
    """
    has_tty = sys.stdin.isatty() and sys.stdout.isatty()

    session = None
    use_simple_input = not has_tty

    if has_tty:
        try:
            session = PromptSession(
                history=InMemoryHistory(),
                completer=create_completer(store),
                complete_while_typing=True,
                bottom_toolbar=lambda: get_bottom_toolbar(store),
            )
        except Exception as e:
            console.print(f"[yellow]Warning:[/yellow] Running in simple input mode: {e}")
            use_simple_input = True

    console.print("[bold cyan]Duely REPL[/bold cyan] - Type 'help' for commands, 'exit' to quit")
    if use_simple_input:
        console.print("[dim](Running in simple mode - no autocomplete)[/dim]")
    console.print()

    while True:
        try:
            if use_simple_input or session is None:
                user_input = input(prompt_text(store))
            else:
                user_input = session.prompt(format_prompt(store))

            if not execute_command(store, parse_command(user_input)):
                break

        except KeyboardInterrupt:
            console.print("[dim]^C (Press Ctrl+D or type 'exit' to quit)[/dim]")
            continue
        except EOFError:
            console.print()
            console.print("[dim]Goodbye![/dim]")
            break
        except Exception as e:
            logger.exception("Unexpected error in REPL command")
            console.print(f"[red]Unexpected error:[/red] {e}")


def main(owner_id: Optional[str] = None) -> None:
    """
    Entry point for REPL mode.

    Called when user runs: duely  (or: duely repl)

    Args:
        owner_id: Identity to sign in with; None starts signed out
    """
    store = TaskStore(LocalBackend())
    store.bind_owner(owner_id)
    if store.error:
        report_failure(store)

    try:
        run_repl(store)
    finally:
        store.bind_owner(None)
