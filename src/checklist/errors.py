# src/checklist/errors.py

from __future__ import annotations


class ChecklistError(Exception):
    """Base class for errors raised by the task store and its adapters."""


class PersistenceError(ChecklistError):
    """A read or write at the persistence boundary failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ChecklistError, LookupError):
    """The task id is not part of the currently loaded view."""

    def __init__(self, task_id: object) -> None:
        super().__init__(f"task {task_id!r} is not in the loaded list")
        self.task_id = task_id


class ValidationError(ChecklistError, ValueError):
    pass
