"""Task and document models.

This module provides:
- Task: a single unit of work placed in one quadrant
- TaskCollection: the whole task document, the unit of persistence and sync

Both translate to and from the camelCase JSON shape shared by the local file
and the remote copy:

    {"todos": [...], "version": "1.0.0", "lastModified": "2025-01-01T00:00:00.000Z"}
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from matrixtodo.core.config import DOCUMENT_VERSION
from matrixtodo.core.errors import ParseError, ValidationError
from matrixtodo.core.types import Quadrant


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_task_id() -> str:
    """Generate an opaque unique task identifier."""
    return str(uuid.uuid4())


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string with millisecond precision."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def next_modified_timestamp(previous: str | None) -> str:
    """Return a lastModified stamp strictly later than ``previous``."""
    current = datetime.now(UTC)
    if previous:
        try:
            prev = datetime.fromisoformat(previous)
        except ValueError:
            prev = None
        if prev is not None:
            if prev.tzinfo is None:
                prev = prev.replace(tzinfo=UTC)
            if current <= prev:
                current = prev + timedelta(milliseconds=1)
    return format_timestamp(current)


def normalize_title(title: Any) -> str:
    """Trim a title and reject it when empty."""
    if not isinstance(title, str):
        raise ValidationError("Title must be a string")
    trimmed = title.strip()
    if not trimmed:
        raise ValidationError("Title must not be empty")
    return trimmed


@dataclass
class Task:
    """A task in the matrix.

    Attributes:
        id: Opaque unique identifier, immutable once created.
        title: Non-empty, trimmed title.
        quadrant: Quadrant the task belongs to.
        order: Rank within the quadrant (ascending display order, gaps allowed).
        created_at: Creation time in milliseconds.
        updated_at: Last mutation time in milliseconds.
        description: Optional free text.
    """

    id: str
    title: str
    quadrant: Quadrant
    order: int
    created_at: int
    updated_at: int
    description: str | None = None

    @classmethod
    def create(
        cls,
        quadrant: Quadrant,
        title: str,
        order: int,
        description: str | None = None,
    ) -> Task:
        """Build a new task with a fresh id and both timestamps set to now."""
        timestamp = now_ms()
        return cls(
            id=new_task_id(),
            title=normalize_title(title),
            quadrant=quadrant,
            order=order,
            created_at=timestamp,
            updated_at=timestamp,
            description=description,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_order: int = 0) -> Task:
        """Create from a stored dictionary.

        Args:
            data: Task in its camelCase wire shape.
            default_order: Order used when the stored task has none.

        Raises:
            ParseError: If required fields are missing or invalid.
        """
        if not isinstance(data, dict):
            raise ParseError("Todo entry must be an object")
        try:
            task_id = data["id"]
            title = data["title"]
            quadrant = Quadrant.parse(data["quadrant"])
        except KeyError as e:
            raise ParseError(f"Todo entry is missing field {e.args[0]!r}") from e
        except ValidationError as e:
            raise ParseError(str(e)) from e
        order = data.get("order")
        if order is None:
            order = default_order
        try:
            return cls(
                id=str(task_id),
                title=str(title),
                quadrant=quadrant,
                order=int(order),
                created_at=int(data.get("createdAt", 0)),
                updated_at=int(data.get("updatedAt", 0)),
                description=data.get("description"),
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid todo entry {task_id!r}: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "quadrant": self.quadrant.value,
            "order": self.order,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    def touched(self, **changes: Any) -> Task:
        """Return a copy with ``changes`` applied and updated_at refreshed."""
        return replace(self, updated_at=now_ms(), **changes)


@dataclass
class TaskCollection:
    """The task document: all tasks plus format version and modification stamp."""

    tasks: list[Task] = field(default_factory=list)
    version: str = DOCUMENT_VERSION
    last_modified: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> TaskCollection:
        """Parse a task document.

        Tasks without an ``order`` get their index in the document.

        Raises:
            ParseError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ParseError("Task document must be a JSON object")
        todos = data.get("todos", [])
        if not isinstance(todos, list):
            raise ParseError("'todos' must be a list")
        return cls(
            tasks=[Task.from_dict(item, default_order=i) for i, item in enumerate(todos)],
            version=str(data.get("version", DOCUMENT_VERSION)),
            last_modified=data.get("lastModified"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the document wire shape."""
        data: dict[str, Any] = {
            "todos": [task.to_dict() for task in self.tasks],
            "version": self.version,
        }
        if self.last_modified is not None:
            data["lastModified"] = self.last_modified
        return data

    def find(self, task_id: str) -> Task | None:
        """Get a task by id."""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def index_of(self, task_id: str) -> int:
        """Position of a task in the document, or -1."""
        for i, task in enumerate(self.tasks):
            if task.id == task_id:
                return i
        return -1

    def in_quadrant(self, quadrant: Quadrant) -> list[Task]:
        """Tasks of one quadrant, stable-sorted by order."""
        return sorted(
            (task for task in self.tasks if task.quadrant == quadrant),
            key=lambda task: task.order,
        )

    def max_order(self, quadrant: Quadrant, exclude: str | None = None) -> int:
        """Highest order in a quadrant, -1 when it is empty."""
        return max(
            (
                task.order
                for task in self.tasks
                if task.quadrant == quadrant and task.id != exclude
            ),
            default=-1,
        )
