"""
FILE: duely/__init__.py
PURPOSE: Personal task manager with deadline-driven status, trash and manual ordering
"""

__version__ = "0.4.0"
