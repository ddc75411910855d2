"""
FILE: duely/repl/__init__.py
PURPOSE: Interactive REPL mode for Duely
EXPORTS:
  - main(owner_id) - Launch the REPL
"""

from .main import main

__all__ = ["main"]
