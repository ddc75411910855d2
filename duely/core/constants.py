"""
FILE: duely/core/constants.py
PURPOSE: Constants used throughout the application
EXPORTS:
  - VALID_PRIORITIES / DEFAULT_PRIORITY: Task priority values
  - DEFAULT_COLOR: Default display color for new tasks
  - STATUS_*: Derived status values, URGENCY_RANK for sorting
  - STATE_*: Lifecycle state names
  - DEFAULT_RETENTION_DAYS: Trash retention window
DEPENDENCIES:
  - None (stdlib only)
NOTES:
  - Centralized constants to avoid magic strings
  - Statuses are derived at read time, never stored
"""

# Task priority constants
PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"
VALID_PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH)
DEFAULT_PRIORITY = PRIORITY_MEDIUM

# Default values
DEFAULT_COLOR = "#3b82f6"

# Derived status constants
STATUS_PENDING = "pending"
STATUS_ON_TRACK = "on-track"
STATUS_APPROACHING = "approaching"
STATUS_URGENT = "urgent"
STATUS_OVERDUE = "overdue"
VALID_STATUSES = (
    STATUS_PENDING,
    STATUS_ON_TRACK,
    STATUS_APPROACHING,
    STATUS_URGENT,
    STATUS_OVERDUE,
)

# Lower rank sorts first in urgency views
URGENCY_RANK = {
    STATUS_OVERDUE: 0,
    STATUS_URGENT: 1,
    STATUS_APPROACHING: 2,
    STATUS_ON_TRACK: 3,
    STATUS_PENDING: 4,
}

# Status thresholds (days until due, inclusive)
URGENT_DAYS = 2
APPROACHING_DAYS = 7

# Lifecycle state constants
STATE_ACTIVE = "active"
STATE_TRASHED = "trashed"
STATE_PURGED = "purged"

# Trash retention
DEFAULT_RETENTION_DAYS = 30
