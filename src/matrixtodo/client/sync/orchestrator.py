"""Decides when the task document is synced.

This module provides:
- SyncOrchestrator: pull on start, push on exit, manual push/pull

Automatic sync is best-effort: failures on start or exit are logged and the
application keeps running on its local data. Manual sync returns the result to
the caller so the user sees it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from matrixtodo.client.sync.types import SyncResult
from matrixtodo.core.errors import MatrixTodoError, ParseError, ValidationError
from matrixtodo.core.types import SyncOutcome

if TYPE_CHECKING:
    from matrixtodo.client.repository import TaskRepository
    from matrixtodo.client.settings import AppSettings, SettingsStore
    from matrixtodo.client.sync.remote import RemoteSync

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Applies sync at application start, exit and on user request."""

    def __init__(
        self,
        repository: TaskRepository,
        settings_store: SettingsStore,
        remote: RemoteSync,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            repository: Task repository (writes pulled documents).
            settings_store: Settings (sync config, last sync time).
            remote: Shared remote sync client.
        """
        self._repository = repository
        self._settings_store = settings_store
        self._remote = remote

    @property
    def remote(self) -> RemoteSync:
        """Shared remote sync client."""
        return self._remote

    def apply_settings(self, settings: AppSettings) -> bool:
        """Reconfigure the remote client from settings.

        Returns:
            True if the remote was (re)configured.
        """
        sync = settings.github_sync
        if not sync.is_configured:
            return False
        self._remote.configure(sync.repo, sync.token)
        return True

    async def _configure_from_settings(self) -> bool:
        return self.apply_settings(await self._settings_store.load())

    async def _record_sync(self, result: SyncResult) -> None:
        if result.success and result.synced_at is not None:
            try:
                await self._settings_store.record_sync_time(result.synced_at)
            except MatrixTodoError as e:
                logger.warning(f"Could not record last sync time: {e}")

    async def _pull_and_apply(self) -> SyncResult:
        result = await self._remote.pull()
        if result.success and result.collection is not None:
            try:
                await self._repository.replace_all(result.collection.tasks)
            except ValidationError as e:
                logger.error(f"Pulled todos are inconsistent: {e}")
                return SyncResult.failure(SyncOutcome.PARSE_ERROR, f"Remote data is malformed: {e}")
            except MatrixTodoError as e:
                logger.error(f"Failed to save pulled todos: {e}")
                return SyncResult.failure(
                    SyncOutcome.STORAGE_ERROR, f"Pulled data could not be saved: {e}"
                )
            await self._record_sync(result)
        return result

    async def _push_current(self) -> SyncResult:
        try:
            collection = await self._repository.store.load()
        except ParseError as e:
            logger.error(f"Refusing to push unreadable local todos: {e}")
            return SyncResult.failure(SyncOutcome.PARSE_ERROR, f"Local data is malformed: {e}")
        except MatrixTodoError as e:
            logger.error(f"Failed to load todos for push: {e}")
            return SyncResult.failure(SyncOutcome.STORAGE_ERROR, f"Local data could not be read: {e}")
        result = await self._remote.push(collection)
        await self._record_sync(result)
        return result

    async def on_startup(self) -> SyncResult | None:
        """Pull once if sync is enabled. Never raises.

        Returns:
            The pull result, or None when sync is disabled.
        """
        try:
            if not await self._configure_from_settings():
                logger.debug("Auto-sync disabled, skipping pull on startup")
                return None
            result = await self._pull_and_apply()
        except Exception:
            logger.exception("Auto-sync pull failed")
            return None

        if result.success:
            logger.info("Auto-sync: Successfully pulled data from GitHub")
        else:
            logger.warning(f"Auto-sync pull skipped: {result.message}")
        return result

    async def on_shutdown(self, timeout: float | None = None) -> SyncResult | None:
        """Push once if sync is enabled, waiting for it to finish. Never raises.

        Args:
            timeout: Optional hard limit in seconds on top of the retry bound.

        Returns:
            The push result, or None when sync is disabled or timed out.
        """
        try:
            if not await self._configure_from_settings():
                logger.debug("Auto-sync disabled, skipping push on shutdown")
                return None
            result = await asyncio.wait_for(self._push_current(), timeout)
        except TimeoutError:
            logger.error(f"Auto-sync push did not finish within {timeout}s")
            return None
        except Exception:
            logger.exception("Auto-sync push failed")
            return None

        if result.success:
            logger.info("Auto-sync: Successfully pushed data to GitHub")
        else:
            logger.warning(f"Auto-sync push failed: {result.message}")
        return result

    async def push_now(self) -> SyncResult:
        """Manual push of the local document."""
        if not self._remote.is_configured:
            await self._configure_from_settings()
        return await self._push_current()

    async def pull_now(self) -> SyncResult:
        """Manual pull; replaces the local document on success."""
        if not self._remote.is_configured:
            await self._configure_from_settings()
        return await self._pull_and_apply()
