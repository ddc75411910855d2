"""
FILE: duely/core/__init__.py
PURPOSE: Domain core (models, lifecycle rules, persistence, ordering, retention)
"""
