"""
FILE: duely/cli/commands/__init__.py
PURPOSE: CLI command modules
"""

# Importing the modules registers their @app.command() handlers
from .tasks import (
    add,
    ls,
    show,
    edit,
    done,
    cal,
    mv,
    reorder,
    attach,
    detach,
)
from .trash import (
    rm,
    trash,
    restore,
    purge,
    empty,
)
from .system import (
    version,
    help,
    repl,
    sweep,
)

__all__ = [
    "add",
    "ls",
    "show",
    "edit",
    "done",
    "cal",
    "mv",
    "reorder",
    "attach",
    "detach",
    "rm",
    "trash",
    "restore",
    "purge",
    "empty",
    "version",
    "help",
    "repl",
    "sweep",
]
