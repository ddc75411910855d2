"""
FILE: duely/logging_setup.py
PURPOSE: Configure logging for CLI and REPL
EXPORTS:
  - setup_logging(console_level, log_dir) -> None
DEPENDENCIES:
  - logging (stdlib)
  - rich.logging (console handler)
NOTES:
  - Console handler: Rich-formatted, on stderr, filtered to duely.* records
  - File handler: everything at DEBUG in <log_dir>/duely.log
  - Call once, early (the CLI callback does this)
"""

import logging
from pathlib import Path
from typing import Union

from rich.console import Console
from rich.logging import RichHandler


class _ConsoleNoiseFilter(logging.Filter):
    """Show our own records; third-party records only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("duely"):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    console_level: Union[int, str] = logging.WARNING,
    log_dir: Union[str, Path, None] = None,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure the root logger with a Rich console handler and (optionally)
    a file handler.

    Safe to call more than once: existing handlers are replaced.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    ch = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    ch.setLevel(console_level)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        fmt = logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        fh = logging.FileHandler(str(log_dir / "duely.log"), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)
