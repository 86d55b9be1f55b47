"""In-process boundary between the presentation layer and the core.

This module provides:
- AppBridge: Wires store, repository, settings and sync together
- TodosAPI / StorageAPI / SettingsAPI / GitHubAPI: The call groups the UI uses

Values crossing the boundary are plain camelCase dicts, the same shape as the
JSON documents. Task operations raise typed MatrixTodoError subclasses whose
messages can be shown to the user; GitHub operations never raise and always
return ``{"success": bool, "message": str, ...}``.

Usage:
    bridge = AppBridge()
    await bridge.start()              # best-effort pull
    task = await bridge.todos.create({"quadrant": "urgent-important", "title": "Ship"})
    await bridge.shutdown()           # best-effort push, awaited
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import subprocess
from pathlib import Path
from typing import Any

from matrixtodo.client.repository import TaskRepository
from matrixtodo.client.settings import SettingsStore
from matrixtodo.client.storage import DocumentBackend, FileBackend, LocalStore
from matrixtodo.client.sync.orchestrator import SyncOrchestrator
from matrixtodo.client.sync.remote import RemoteSync
from matrixtodo.client.sync.retry import RetryPolicy
from matrixtodo.client.sync.types import SyncResult
from matrixtodo.core.config import get_data_dir
from matrixtodo.core.errors import MatrixTodoError, ParseError, StorageError, ValidationError
from matrixtodo.core.models import Task
from matrixtodo.core.types import SyncOutcome

logger = logging.getLogger(__name__)


class TodosAPI:
    """``todos.*`` calls."""

    def __init__(self, repository: TaskRepository) -> None:
        self._repository = repository

    async def load(self) -> list[dict[str, Any]]:
        return [task.to_dict() for task in await self._repository.list_tasks()]

    async def save(self, todos: list[dict[str, Any]]) -> None:
        """Replace the whole task list."""
        try:
            tasks = [Task.from_dict(item, default_order=i) for i, item in enumerate(todos)]
        except ParseError as e:
            raise ValidationError(str(e)) from e
        await self._repository.replace_all(tasks)

    async def create(self, todo: dict[str, Any]) -> dict[str, Any]:
        """Create a task from ``{"quadrant", "title", "description"?}``."""
        if "quadrant" not in todo:
            raise ValidationError("Quadrant is required")
        task = await self._repository.add(
            todo["quadrant"], todo.get("title", ""), todo.get("description")
        )
        return task.to_dict()

    async def update(self, task_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        return (await self._repository.update(task_id, updates)).to_dict()

    async def delete(self, task_id: str) -> None:
        await self._repository.delete(task_id)

    async def move(self, task_id: str, quadrant: str) -> dict[str, Any]:
        return (await self._repository.move(task_id, quadrant)).to_dict()

    async def reorder(self, quadrant: str, moved_id: str, target_id: str) -> list[dict[str, Any]]:
        tasks = await self._repository.reorder(quadrant, moved_id, target_id)
        return [task.to_dict() for task in tasks]

    async def by_quadrant(self, quadrant: str) -> list[dict[str, Any]]:
        return [task.to_dict() for task in await self._repository.get_by_quadrant(quadrant)]


class StorageAPI:
    """``storage.*`` calls (pass-through utilities)."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def get_path(self) -> str:
        """Location of the task document."""
        return self._store.path

    async def open_folder(self) -> bool:
        """Open the folder holding the task document in the file manager.

        Raises:
            StorageError: If the store is not file based or the folder cannot
                be opened.
        """
        backend = self._store.backend
        if not isinstance(backend, FileBackend):
            raise StorageError(f"No folder to open for {backend.location}")
        folder = backend.base_dir
        folder.mkdir(parents=True, exist_ok=True)
        try:
            await asyncio.to_thread(_open_path, folder)
        except OSError as e:
            logger.error(f"Failed to open folder: {e}")
            raise StorageError(f"Cannot open {folder}: {e}") from e
        return True


def _open_path(path: Path) -> None:
    """Open a path with the platform's default handler."""
    system = platform.system()
    if system == "Windows":
        os.startfile(path)  # type: ignore[attr-defined]
    elif system == "Darwin":
        subprocess.run(["open", str(path)], check=False)
    else:
        subprocess.run(["xdg-open", str(path)], check=False)


class SettingsAPI:
    """``settings.*`` calls."""

    def __init__(self, settings_store: SettingsStore, orchestrator: SyncOrchestrator) -> None:
        self._settings_store = settings_store
        self._orchestrator = orchestrator

    async def get(self) -> dict[str, Any]:
        return (await self._settings_store.load()).to_dict()

    async def update(self, updates: dict[str, Any]) -> dict[str, Any]:
        """Merge a partial update; reconfigures sync when its config changes."""
        settings = await self._settings_store.update(updates)
        if "githubSync" in updates and self._orchestrator.apply_settings(settings):
            logger.info("GitHub sync reconfigured from settings")
        return settings.to_dict()


class GitHubAPI:
    """``github.*`` calls. Never raise."""

    def __init__(self, remote: RemoteSync, orchestrator: SyncOrchestrator) -> None:
        self._remote = remote
        self._orchestrator = orchestrator

    async def test(self, repo: str, token: str) -> dict[str, Any]:
        """Configure the shared client with ``repo``/``token`` and test it."""
        self._remote.configure(repo, token)
        return (await self._remote.test_connection()).to_dict()

    async def create_repo(self, name: str, token: str) -> dict[str, Any]:
        return (await self._remote.create_private_repository(name, token)).to_dict()

    async def push(self) -> dict[str, Any]:
        return (await self._guard(self._orchestrator.push_now())).to_dict()

    async def pull(self) -> dict[str, Any]:
        return (await self._guard(self._orchestrator.pull_now())).to_dict()

    @staticmethod
    async def _guard(call: Any) -> SyncResult:
        try:
            result: SyncResult = await call
        except MatrixTodoError as e:
            logger.error(f"GitHub sync failed: {e}")
            return SyncResult.failure(SyncOutcome.ERROR, str(e))
        return result


class AppBridge:
    """Builds the core components and exposes the boundary call groups."""

    def __init__(
        self,
        data_dir: Path | None = None,
        backend: DocumentBackend | None = None,
        remote: RemoteSync | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the bridge.

        Args:
            data_dir: Data directory (defaults to get_data_dir()). Ignored when
                ``backend`` is given.
            backend: Document backend (e.g. MemoryBackend when there is no
                filesystem).
            remote: Remote sync client to share (one is created otherwise).
            retry_policy: Backoff for task mutations and remote calls.
        """
        self.backend = backend or FileBackend(data_dir or get_data_dir())
        self.store = LocalStore(self.backend)
        self.settings_store = SettingsStore(self.backend)
        self.repository = TaskRepository(self.store, retry_policy)
        self.remote = remote or RemoteSync(retry_policy=retry_policy or RetryPolicy())
        self.orchestrator = SyncOrchestrator(self.repository, self.settings_store, self.remote)

        self.todos = TodosAPI(self.repository)
        self.storage = StorageAPI(self.store)
        self.settings = SettingsAPI(self.settings_store, self.orchestrator)
        self.github = GitHubAPI(self.remote, self.orchestrator)

    async def start(self) -> SyncResult | None:
        """Application start: best-effort pull."""
        logger.info(f"Starting with data in {self.backend.location}")
        return await self.orchestrator.on_startup()

    async def shutdown(self, timeout: float | None = None) -> SyncResult | None:
        """Application exit: best-effort push, awaited before returning."""
        return await self.orchestrator.on_shutdown(timeout)
