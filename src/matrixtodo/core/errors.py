"""Exception hierarchy shared by the store, repository and sync layers.

Every error carries a human-readable message that can be shown to the user
as-is.
"""

from __future__ import annotations


class MatrixTodoError(Exception):
    """Base exception for matrixtodo errors."""


class ValidationError(MatrixTodoError):
    """Caller-supplied data violates an invariant (never retried)."""


class NotFoundError(MatrixTodoError):
    """Referenced task id is absent."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Todo with id {task_id} not found")
        self.task_id = task_id


class StorageError(MatrixTodoError):
    """Local I/O failure while reading or writing a document."""


class ParseError(MatrixTodoError):
    """Document content is not valid JSON or has the wrong shape."""
