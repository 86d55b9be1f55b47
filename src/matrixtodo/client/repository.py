"""Task repository: the only writer of the task document.

Every mutating operation loads the current document, applies one change and
saves the whole document once. The post-mutation value is returned so that a
caller holding an optimistic cache can update it without reloading.

Ordering:
    Tasks carry a per-quadrant ``order``. New and moved tasks are appended
    (max order + 1). Reordering removes the moved task from the quadrant's
    sorted list, reinserts it at the target's former index and renumbers the
    whole quadrant 0..n-1, so repeated drags never accumulate gaps or ties.

Unreadable documents:
    A task document that is not valid JSON (or not a task document) reads as
    an empty collection. The warning is logged by the store, and the next
    mutation or pull overwrites the broken file.

Concurrency:
    There is no internal locking. Callers serialize mutations; two
    unsynchronized mutations may interleave their load/save cycles and lose
    one update.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

from matrixtodo.client.storage import LocalStore
from matrixtodo.client.sync.retry import RetryPolicy
from matrixtodo.core.errors import NotFoundError, StorageError, ValidationError
from matrixtodo.core.models import Task, TaskCollection, normalize_title, now_ms
from matrixtodo.core.types import Quadrant

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields a caller may change through update()
UPDATABLE_FIELDS = ("title", "description", "quadrant", "order")


def reorder_tasks(tasks: list[Task], moved_id: str, target_id: str) -> list[Task] | None:
    """Move one task to another task's position within an ordered list.

    Args:
        tasks: Tasks of one quadrant, sorted by order.
        moved_id: Task being dragged.
        target_id: Task whose position the dragged task takes.

    Returns:
        The renumbered list (order == index), or None if nothing changes.
    """
    old_index = next((i for i, t in enumerate(tasks) if t.id == moved_id), -1)
    new_index = next((i for i, t in enumerate(tasks) if t.id == target_id), -1)
    if old_index == -1 or new_index == -1 or old_index == new_index:
        return None

    reordered = list(tasks)
    moved = reordered.pop(old_index)
    reordered.insert(new_index, moved)

    timestamp = now_ms()
    return [
        task if task.order == i else replace(task, order=i, updated_at=timestamp)
        for i, task in enumerate(reordered)
    ]


class TaskRepository:
    """Authoritative task collection backed by a LocalStore."""

    def __init__(self, store: LocalStore, retry_policy: RetryPolicy | None = None) -> None:
        """Initialize the repository.

        Args:
            store: Local store for the task document.
            retry_policy: Backoff parameters for mutations. Only StorageError
                is ever retried.
        """
        self._store = store
        self._retry = replace(retry_policy or RetryPolicy(), retryable_exceptions=(StorageError,))

    @property
    def store(self) -> LocalStore:
        """Underlying local store."""
        return self._store

    async def _mutate(
        self,
        label: str,
        mutation: Callable[[TaskCollection], Awaitable[T]],
    ) -> T:
        """Run a load -> mutate -> save cycle under the retry policy."""

        async def attempt() -> T:
            collection = await self._store.load_or_empty()
            return await mutation(collection)

        return await self._retry.run(attempt, label=label)

    # === Queries ===

    async def list_tasks(self) -> list[Task]:
        """All tasks in document order."""
        return (await self._store.load_or_empty()).tasks

    async def get(self, task_id: str) -> Task:
        """Get one task.

        Raises:
            NotFoundError: If the task doesn't exist.
        """
        task = (await self._store.load_or_empty()).find(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    async def get_by_quadrant(self, quadrant: Quadrant | str) -> list[Task]:
        """Tasks of a quadrant sorted by order (stable)."""
        quadrant = Quadrant.parse(quadrant)
        return (await self._store.load_or_empty()).in_quadrant(quadrant)

    # === Mutations ===

    async def add(
        self,
        quadrant: Quadrant | str,
        title: str,
        description: str | None = None,
    ) -> Task:
        """Create a task at the end of a quadrant.

        Raises:
            ValidationError: If the title is empty after trimming.
        """
        quadrant = Quadrant.parse(quadrant)
        title = normalize_title(title)

        async def mutation(collection: TaskCollection) -> Task:
            task = Task.create(
                quadrant,
                title,
                order=collection.max_order(quadrant) + 1,
                description=description,
            )
            collection.tasks.append(task)
            await self._store.save(collection)
            return task

        task = await self._mutate("todos:create", mutation)
        logger.info(f"Created todo {task.id} in {quadrant.value} at order {task.order}")
        return task

    async def update(self, task_id: str, fields: dict[str, Any]) -> Task:
        """Apply a shallow partial update.

        Supplied fields replace stored ones, absent fields are kept. ``id``
        and ``createdAt`` can never be overwritten; unknown keys are ignored.
        A quadrant change without an ``order`` appends the task to the end of
        the new quadrant.

        Raises:
            ValidationError: If a supplied field is invalid, or the order is
                already taken in the target quadrant (the whole update is
                rejected).
            NotFoundError: If the task doesn't exist.
        """
        changes = self._validate_fields(fields)

        async def mutation(collection: TaskCollection) -> Task:
            index = collection.index_of(task_id)
            if index == -1:
                raise NotFoundError(task_id)
            current = collection.tasks[index]
            applied = dict(changes)
            quadrant = applied.get("quadrant", current.quadrant)
            if "order" in applied:
                taken = any(
                    task.id != task_id and task.quadrant == quadrant and task.order == applied["order"]
                    for task in collection.tasks
                )
                if taken:
                    raise ValidationError(
                        f"Order {applied['order']} is already used in {quadrant.value}"
                    )
            elif quadrant != current.quadrant:
                applied["order"] = collection.max_order(quadrant, exclude=task_id) + 1
            updated = current.touched(**applied)
            collection.tasks[index] = updated
            await self._store.save(collection)
            return updated

        task = await self._mutate("todos:update", mutation)
        logger.info(f"Updated todo {task_id} ({', '.join(changes) or 'timestamp only'})")
        return task

    async def delete(self, task_id: str) -> None:
        """Delete a task. Deleting an unknown id only logs a warning."""

        async def mutation(collection: TaskCollection) -> bool:
            remaining = [t for t in collection.tasks if t.id != task_id]
            if len(remaining) == len(collection.tasks):
                return False
            await self._store.save(replace(collection, tasks=remaining))
            return True

        if await self._mutate("todos:delete", mutation):
            logger.info(f"Deleted todo {task_id}")
        else:
            logger.warning(f"Todo with id {task_id} not found for deletion")

    async def move(self, task_id: str, quadrant: Quadrant | str) -> Task:
        """Move a task to the end of another quadrant.

        Raises:
            NotFoundError: If the task doesn't exist.
        """
        quadrant = Quadrant.parse(quadrant)

        async def mutation(collection: TaskCollection) -> Task:
            index = collection.index_of(task_id)
            if index == -1:
                raise NotFoundError(task_id)
            moved = collection.tasks[index].touched(
                quadrant=quadrant,
                order=collection.max_order(quadrant, exclude=task_id) + 1,
            )
            collection.tasks[index] = moved
            await self._store.save(collection)
            return moved

        task = await self._mutate("todos:move", mutation)
        logger.info(f"Moved todo {task_id} to {quadrant.value} at order {task.order}")
        return task

    async def reorder(
        self,
        quadrant: Quadrant | str,
        moved_id: str,
        target_id: str,
    ) -> list[Task]:
        """Drop ``moved_id`` onto ``target_id``'s position within a quadrant.

        Returns:
            The quadrant's tasks in their new order. When either id is not in
            the quadrant, or both ids are the same, nothing is saved and the
            current order is returned.
        """
        quadrant = Quadrant.parse(quadrant)

        async def mutation(collection: TaskCollection) -> list[Task]:
            current = collection.in_quadrant(quadrant)
            reordered = reorder_tasks(current, moved_id, target_id)
            if reordered is None:
                logger.info(
                    f"Reorder skipped in {quadrant.value}: "
                    f"moved={moved_id} target={target_id} not distinct members"
                )
                return current
            by_id = {task.id: task for task in reordered}
            collection.tasks = [by_id.get(task.id, task) for task in collection.tasks]
            await self._store.save(collection)
            logger.debug(
                f"Reordered {quadrant.value}: {[task.id for task in reordered]}"
            )
            return reordered

        return await self._mutate("todos:reorder", mutation)

    async def replace_all(self, tasks: list[Task]) -> TaskCollection:
        """Overwrite the whole document with ``tasks``.

        Raises:
            ValidationError: If two tasks share an id.
        """
        seen: set[str] = set()
        for task in tasks:
            if task.id in seen:
                raise ValidationError(f"Duplicate todo id {task.id}")
            seen.add(task.id)

        async def mutation(collection: TaskCollection) -> TaskCollection:
            return await self._store.save(replace(collection, tasks=list(tasks)))

        saved = await self._mutate("todos:save", mutation)
        logger.info(f"Saved {len(saved.tasks)} todos")
        return saved

    @staticmethod
    def _validate_fields(fields: dict[str, Any]) -> dict[str, Any]:
        """Keep updatable fields and validate them."""
        changes: dict[str, Any] = {}
        for key in UPDATABLE_FIELDS:
            if key not in fields:
                continue
            value = fields[key]
            if key == "title":
                value = normalize_title(value)
            elif key == "quadrant":
                value = Quadrant.parse(value)
            elif key == "order":
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ValidationError(f"Order must be a non-negative integer, got {value!r}")
            elif key == "description" and value is not None and not isinstance(value, str):
                raise ValidationError("Description must be a string")
            changes[key] = value
        ignored = set(fields) - set(UPDATABLE_FIELDS)
        if ignored:
            logger.debug(f"Ignoring non-updatable fields: {sorted(ignored)}")
        return changes
