"""Application settings persistence.

This module provides:
- SyncConfig: Remote sync settings (enabled flag, repository, token, last sync)
- AppSettings: All persisted application settings
- SettingsStore: Load (overlaid on defaults) / save / partial update

Settings live in their own document, separate from the task document, and are
always overlaid field by field on the defaults so that files written by older
versions (or hand-edited ones) never break loading:

    {"showFloatingIcon": true,
     "githubSync": {"enabled": false, "repo": "", "token": "", "lastSyncTime": 0}}
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from matrixtodo.client.storage import DocumentBackend, DocumentNotFoundError
from matrixtodo.core.config import SETTINGS_FILE
from matrixtodo.core.errors import StorageError

logger = logging.getLogger(__name__)


def _overlay(value: Any, default: Any, expected: type | tuple[type, ...]) -> Any:
    """Use ``value`` when it has the expected type, otherwise ``default``."""
    # bool is an int subclass
    if isinstance(value, bool) and expected is not bool:
        return default
    return value if isinstance(value, expected) else default


@dataclass
class SyncConfig:
    """Remote sync settings.

    Attributes:
        enabled: Whether automatic sync on start/exit is on.
        repo: Repository identifier (``owner/repo``).
        token: Access token for the remote API.
        last_sync_time: Time of the last successful push or pull, in ms.
    """

    enabled: bool = False
    repo: str = ""
    token: str = ""
    last_sync_time: int | None = None

    @property
    def is_configured(self) -> bool:
        """True when sync is enabled and has a repository and a token."""
        return self.enabled and bool(self.repo) and bool(self.token)

    @classmethod
    def from_dict(cls, data: Any, base: SyncConfig | None = None) -> SyncConfig:
        """Overlay stored values on ``base`` (or the defaults)."""
        base = base or cls()
        if not isinstance(data, dict):
            return replace(base)
        last_sync = _overlay(data.get("lastSyncTime", base.last_sync_time), base.last_sync_time, (int, float))
        return cls(
            enabled=_overlay(data.get("enabled", base.enabled), base.enabled, bool),
            repo=_overlay(data.get("repo", base.repo), base.repo, str),
            token=_overlay(data.get("token", base.token), base.token, str),
            last_sync_time=int(last_sync) if last_sync is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase settings shape."""
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "repo": self.repo,
            "token": self.token,
        }
        if self.last_sync_time is not None:
            data["lastSyncTime"] = self.last_sync_time
        return data


@dataclass
class AppSettings:
    """Persisted application settings."""

    show_floating_icon: bool = True
    github_sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def from_dict(cls, data: Any, base: AppSettings | None = None) -> AppSettings:
        """Overlay stored (possibly partial) settings on ``base`` (or the defaults)."""
        base = base or cls()
        if not isinstance(data, dict):
            return replace(base, github_sync=replace(base.github_sync))
        return cls(
            show_floating_icon=_overlay(
                data.get("showFloatingIcon", base.show_floating_icon),
                base.show_floating_icon,
                bool,
            ),
            github_sync=SyncConfig.from_dict(data.get("githubSync"), base.github_sync),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase settings shape."""
        return {
            "showFloatingIcon": self.show_floating_icon,
            "githubSync": self.github_sync.to_dict(),
        }


class SettingsStore:
    """Load and save AppSettings."""

    def __init__(self, backend: DocumentBackend, key: str = SETTINGS_FILE) -> None:
        self._backend = backend
        self._key = key

    async def load(self) -> AppSettings:
        """Load settings merged over the defaults.

        A missing, unreadable or malformed settings document yields defaults.
        """
        try:
            text = await asyncio.to_thread(self._backend.read, self._key)
        except DocumentNotFoundError:
            return AppSettings()
        except OSError as e:
            logger.warning(f"Failed to read settings, using defaults: {e}")
            return AppSettings()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Settings file is not valid JSON, using defaults: {e}")
            return AppSettings()
        return AppSettings.from_dict(data)

    async def save(self, settings: AppSettings) -> None:
        """Write the settings document.

        Raises:
            StorageError: If the settings cannot be written.
        """
        text = json.dumps(settings.to_dict(), indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._backend.write, self._key, text)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            raise StorageError(f"Failed to write settings: {e}") from e

    async def update(self, updates: dict[str, Any]) -> AppSettings:
        """Merge a partial camelCase update into the stored settings.

        A partial ``githubSync`` object is merged over the current sync config.

        Returns:
            The merged settings, as saved.
        """
        current = await self.load()
        updated = AppSettings.from_dict(updates, base=current)
        await self.save(updated)
        return updated

    async def record_sync_time(self, synced_at: int) -> AppSettings:
        """Store the time of a successful sync."""
        return await self.update({"githubSync": {"lastSyncTime": synced_at}})
