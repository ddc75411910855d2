"""
FILE: duely/core/exceptions.py
PURPOSE: Custom exception classes for error handling
EXPORTS:
  - DuelyError (base exception)
  - ValidationError / InvalidInputError
  - NotFoundError / TaskNotFoundError
  - InvalidStateError
  - UnauthorizedError
  - TransientError
DEPENDENCIES:
  - None (stdlib only)
NOTES:
  - All exceptions inherit from DuelyError for easy catching
  - Exceptions include context (IDs, states) for helpful error messages
  - Service layer raises these, UI layers and the sync store catch and display
"""


class DuelyError(Exception):
    """Base exception for all Duely errors."""
    pass


class ValidationError(DuelyError):
    """Input validation failed (empty title, bad priority, malformed date)."""

    def __init__(self, message: str):
        super().__init__(message)


# Older name kept for callers that think in terms of "input"
InvalidInputError = ValidationError


class NotFoundError(DuelyError):
    """Record doesn't exist or isn't owned by the caller."""

    def __init__(self, task_id: str, message: str = ""):
        self.task_id = task_id
        super().__init__(message or f"Task {task_id} not found")


class TaskNotFoundError(NotFoundError):
    """Task with given ID doesn't exist for this owner."""

    def __init__(self, task_id: str):
        super().__init__(task_id)


class InvalidStateError(DuelyError):
    """Lifecycle transition not allowed from the task's current state."""

    def __init__(self, task_id: str, state: str, action: str):
        self.task_id = task_id
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} task {task_id}: task is {state}")


class UnauthorizedError(DuelyError):
    """No owner identity could be resolved."""

    def __init__(self, message: str = "No user identity available"):
        super().__init__(message)


class TransientError(DuelyError):
    """Storage unavailable or timed out. Safe for the user to retry."""

    def __init__(self, message: str):
        super().__init__(message)
