"""
FILE: duely/repl/completer.py
PURPOSE: Autocomplete logic for REPL commands and arguments
EXPORTS:
  - DuelyCompleter (Completer for command/arg completion)
  - create_completer(store) -> DuelyCompleter
DEPENDENCIES:
  - prompt_toolkit.completion (Completer, Completion)
  - duely.sync (TaskStore, for task id completion)
NOTES:
  - Suggests command names at the start of the line
  - Suggests short task ids (from the session cache) for id-taking commands;
    trashed ids for restore/purge
  - Suggests status values after --status, priorities after --priority
  - Case-insensitive matching
"""

from typing import Iterable, List

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..core.constants import VALID_PRIORITIES, VALID_STATUSES
from ..formatting import short_id


class DuelyCompleter(Completer):
    """Context-aware completer backed by the session's TaskStore."""

    COMMANDS = {
        "add": "Create a task",
        "ls": "List open tasks",
        "show": "Show task details",
        "cal": "Tasks on a given day",
        "edit": "Edit task fields",
        "done": "Toggle completion",
        "rm": "Move task to trash",
        "trash": "Show trash",
        "restore": "Restore from trash",
        "purge": "Permanently delete from trash",
        "empty": "Empty the trash",
        "mv": "Move task onto another's position",
        "reorder": "Set full manual order",
        "attach": "Attach a file descriptor",
        "detach": "Remove an attachment",
        "refresh": "Reload from storage",
        "login": "Switch identity",
        "logout": "Clear identity and cache",
        "whoami": "Show identity",
        "help": "Show commands",
        "clear": "Clear screen",
        "exit": "Quit",
    }

    COMMAND_FLAGS = {
        "add": ["--desc", "--start", "--due", "--priority", "--color"],
        "edit": ["--title", "--desc", "--start", "--due", "--priority", "--color"],
        "ls": ["--completed", "--status", "--search", "--urgency"],
        "attach": ["--name", "--ref", "--size", "--type"],
    }

    ACTIVE_ID_COMMANDS = {"show", "edit", "done", "rm", "mv", "attach", "detach"}
    TRASH_ID_COMMANDS = {"restore", "purge"}

    def __init__(self, store=None):
        self.store = store

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor
        words = text.split()
        ends_with_space = text.endswith(" ")

        if not words or (len(words) == 1 and not ends_with_space):
            yield from self._complete_commands(words[0] if words else "")
            return

        command = words[0].lower()
        current = "" if ends_with_space else words[-1]
        previous = words[-1] if ends_with_space else (words[-2] if len(words) > 1 else "")

        if previous == "--status":
            yield from self._complete_values(VALID_STATUSES, current)
            return
        if previous == "--priority":
            yield from self._complete_values(VALID_PRIORITIES, current)
            return

        if current.startswith("--") or (ends_with_space and command in self.COMMAND_FLAGS
                                        and (len(words) > 1 or command == "ls")):
            yield from self._complete_values(self.COMMAND_FLAGS.get(command, []), current)
            return

        if command in self.ACTIVE_ID_COMMANDS or command in self.TRASH_ID_COMMANDS:
            yield from self._complete_values(self._task_ids(command), current)

    def _complete_commands(self, word: str) -> Iterable[Completion]:
        word_lower = word.lower()
        for command, description in self.COMMANDS.items():
            if command.startswith(word_lower):
                yield Completion(
                    command,
                    start_position=-len(word),
                    display=command,
                    display_meta=description,
                )

    def _complete_values(self, values: Iterable[str], word: str) -> Iterable[Completion]:
        word_lower = word.lower()
        for value in values:
            if value.lower().startswith(word_lower):
                yield Completion(value, start_position=-len(word), display=value)

    def _task_ids(self, command: str) -> List[str]:
        if self.store is None:
            return []
        tasks = self.store.trashed if command in self.TRASH_ID_COMMANDS else self.store.tasks
        return [short_id(t.id) for t in tasks]


def create_completer(store=None) -> DuelyCompleter:
    """Create a completer bound to the session's store (optional)."""
    return DuelyCompleter(store)
