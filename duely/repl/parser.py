"""
FILE: duely/repl/parser.py
PURPOSE: Parse user input into commands, arguments and flags for the REPL
EXPORTS:
  - ParseResult (dataclass for parsed commands)
  - parse_command(input_str) -> ParseResult
DEPENDENCIES:
  - shlex (shell-like parsing with quotes)
  - dataclasses, typing (stdlib)
NOTES:
  - Handles quoted strings: add "task with spaces"
  - Supports value flags (--due 2025-01-10) and boolean flags (--completed)
  - Case-insensitive command names
"""

import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Union


@dataclass
class ParseResult:
    """
    Result of parsing a REPL command.

    Attributes:
        command: The command name (e.g., "add", "ls", "rm")
        args: Positional arguments (e.g., ["task title"])
        flags: Flag arguments (e.g., {"due": "2025-01-10", "completed": True})
        raw_input: Original input string
    """
    command: str
    args: List[str] = field(default_factory=list)
    flags: Dict[str, Union[str, bool]] = field(default_factory=dict)
    raw_input: str = ""

    def flag(self, name: str, default=None):
        return self.flags.get(name, default)

    def text_flag(self, name: str):
        """Value of a value flag, or None if absent or given without a value."""
        value = self.flags.get(name)
        return value if isinstance(value, str) else None


def parse_command(input_str: str) -> ParseResult:
    """
    Parse REPL input into command, args, and flags.

    Examples:
        >>> parse_command('add "Write report" --due 2025-01-10')
        ParseResult(command='add', args=['Write report'], flags={'due': '2025-01-10'}, ...)

        >>> parse_command("ls --completed")
        ParseResult(command='ls', args=[], flags={'completed': True}, ...)

    Notes:
        - The first token is the command
        - A --flag followed by a non-flag token takes it as its value
        - An unclosed quote falls back to whitespace splitting
    """
    input_str = input_str.strip()
    if not input_str:
        return ParseResult(command="", raw_input=input_str)

    try:
        tokens = shlex.split(input_str)
    except ValueError:
        tokens = input_str.split()

    if not tokens:
        return ParseResult(command="", raw_input=input_str)

    command = tokens[0].lower()
    args: List[str] = []
    flags: Dict[str, Union[str, bool]] = {}

    i = 1
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("--") and len(token) > 2:
            name = token[2:]
            if i + 1 < len(tokens) and not tokens[i + 1].startswith("--"):
                flags[name] = tokens[i + 1]
                i += 2
            else:
                flags[name] = True
                i += 1
        else:
            args.append(token)
            i += 1

    return ParseResult(command=command, args=args, flags=flags, raw_input=input_str)
