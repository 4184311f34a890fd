# src/tasktrack/core/errors.py

"""
Error taxonomy of the task engine.

Every rejected operation raises one of these; none of them is fatal and the
persisted document is never touched when they are raised.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class TaskTrackError(Exception):
    """Base error for task engine operations."""


class NotFoundError(TaskTrackError):
    """Referenced task/subtask id does not exist."""

    def __init__(self, ref: Any, message: str | None = None) -> None:
        self.ref = ref
        super().__init__(message or f"task {ref} not found")


class DuplicateError(TaskTrackError):
    """An id or dependency edge that already exists was added again."""


class CycleError(TaskTrackError):
    """Dependency insertion would close a cycle."""

    def __init__(self, message: str, path: Sequence[Any] = ()) -> None:
        self.path = list(path)
        super().__init__(message)


class ConflictError(TaskTrackError):
    """Deletion blocked by existing dependents."""

    def __init__(self, message: str, dependents: Sequence[Any] = ()) -> None:
        self.dependents = list(dependents)
        super().__init__(message)


class ValidationError(TaskTrackError):
    """Malformed input: bad patch field, bad value type, self-dependency."""


class InvalidTransitionError(ValidationError):
    """Status value that cannot be interpreted."""


class StoreError(TaskTrackError):
    """The persisted document is unreadable or could not be written."""
