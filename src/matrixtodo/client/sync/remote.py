"""One-file sync of the task document with a GitHub repository.

This module provides:
- RemoteSync: configure / test_connection / create_private_repository / push / pull

Conflict policy is last-write-wins on the whole document:
- push always writes the local document. The file's current sha is read right
  before writing only because the contents API requires it to replace a file.
  If the sha went stale in between (someone pushed meanwhile), it is re-read
  once and the write repeated, so the later push still wins.
- pull always returns the entire remote document; the caller replaces the
  local one with it.
Edits made on two devices between a pull and the next push are not merged:
the later push discards the earlier one.

One RemoteSync instance is created by the application and injected into
everything that syncs; configuring it performs no I/O.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from matrixtodo.client.api import (
    GitHubClient,
    RemoteAuthError,
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemoteUnavailableError,
)
from matrixtodo.client.sync.retry import RetryPolicy
from matrixtodo.client.sync.types import SyncResult
from matrixtodo.core.config import RemoteConfig, get_api_url
from matrixtodo.core.errors import ParseError, ValidationError
from matrixtodo.core.models import TaskCollection, format_timestamp, now_ms
from matrixtodo.core.types import SyncOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[RemoteConfig], GitHubClient]

NOT_CONFIGURED_MESSAGE = "GitHub sync is not configured"


def _failure(error: Exception) -> SyncResult:
    """Map an exception raised during a remote call to a failed result."""
    if isinstance(error, RemoteAuthError):
        return SyncResult.failure(SyncOutcome.AUTH_ERROR, f"Authentication failed: {error}")
    if isinstance(error, RemoteConflictError):
        return SyncResult.failure(SyncOutcome.CONFLICT, f"Remote rejected the update: {error}")
    if isinstance(error, RemoteUnavailableError):
        return SyncResult.failure(SyncOutcome.UNAVAILABLE, f"GitHub is unreachable: {error}")
    if isinstance(error, ParseError):
        return SyncResult.failure(SyncOutcome.PARSE_ERROR, f"Remote data is malformed: {error}")
    return SyncResult.failure(SyncOutcome.ERROR, str(error) or error.__class__.__name__)


class RemoteSync:
    """Push/pull the task document to a single file in a repository."""

    def __init__(
        self,
        client_factory: ClientFactory = GitHubClient,
        retry_policy: RetryPolicy | None = None,
        api_url: str | None = None,
    ) -> None:
        """Initialize the sync client.

        Args:
            client_factory: Builds a GitHubClient for a RemoteConfig.
            retry_policy: Optional backoff for remote calls; only
                RemoteUnavailableError is retried.
            api_url: Base API URL (defaults to $MATRIXTODO_GITHUB_API_URL or
                https://api.github.com).
        """
        self._client_factory = client_factory
        self._retry = (
            RetryPolicy(
                max_retries=retry_policy.max_retries,
                base_delay=retry_policy.base_delay,
                retryable_exceptions=(RemoteUnavailableError,),
            )
            if retry_policy
            else None
        )
        self._api_url = api_url or get_api_url()
        self._config: RemoteConfig | None = None

    @property
    def config(self) -> RemoteConfig | None:
        """Current configuration, if any."""
        return self._config

    @property
    def is_configured(self) -> bool:
        """True when a repository and token are set."""
        return self._config is not None and bool(self._config.repo) and bool(self._config.token)

    @property
    def retry_policy(self) -> RetryPolicy | None:
        """Backoff applied to remote calls."""
        return self._retry

    def configure(self, repo: str, token: str) -> None:
        """Set the repository and token. Performs no I/O."""
        self._config = RemoteConfig(repo=repo, token=token, api_url=self._api_url)
        logger.info(f"Remote sync configured for {self._config.repo or '<no repo>'}")

    async def _call(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a remote call, under the retry policy when there is one."""
        if self._retry is None:
            return await operation()
        return await self._retry.run(operation, label=label)

    def _require_config(self) -> tuple[RemoteConfig, str, str]:
        """Return the config and split repository.

        Raises:
            ValidationError: If sync is not configured or the repository is
                not ``owner/repo``.
        """
        if self._config is None:
            raise ValidationError(NOT_CONFIGURED_MESSAGE)
        owner, name = self._config.validate_repo()
        return self._config, owner, name

    async def test_connection(self) -> SyncResult:
        """Check that the configured repository is reachable with the token."""
        if not self.is_configured:
            return SyncResult.failure(SyncOutcome.NOT_CONFIGURED, NOT_CONFIGURED_MESSAGE)
        try:
            config, owner, name = self._require_config()
            async with self._client_factory(config) as client:
                await self._call(
                    "github:test", lambda: client.get_repository(owner, name)
                )
        except RemoteNotFoundError:
            return SyncResult.failure(
                SyncOutcome.REPO_NOT_FOUND, f"Repository {self._config.repo} does not exist"
            )
        except (RemoteError, ValidationError) as e:
            logger.warning(f"Connection test failed: {e}")
            return _failure(e)
        return SyncResult(success=True, message="Connection successful")

    async def create_private_repository(self, name: str, token: str | None = None) -> SyncResult:
        """Create a private repository seeded with an initial commit.

        Args:
            name: Repository name.
            token: Token to use (defaults to the configured one).

        Returns:
            Result whose ``repo`` is the full ``owner/name`` identifier.
        """
        token = token or (self._config.token if self._config else "")
        if not token:
            return SyncResult.failure(SyncOutcome.NOT_CONFIGURED, "No GitHub token configured")
        name = name.strip()
        if not name:
            return SyncResult.failure(SyncOutcome.ERROR, "Repository name must not be empty")

        config = RemoteConfig(repo="", token=token, api_url=self._api_url)
        try:
            async with self._client_factory(config) as client:
                data = await self._call(
                    "github:createRepo", lambda: client.create_repository(name)
                )
        except RemoteError as e:
            logger.warning(f"Failed to create repository {name}: {e}")
            return _failure(e)

        full_name = str(data.get("full_name") or name)
        logger.info(f"Created private repository {full_name}")
        return SyncResult(success=True, message="Repository created", repo=full_name)

    async def push(self, collection: TaskCollection) -> SyncResult:
        """Upload the whole document, replacing the remote copy."""
        if not self.is_configured:
            return SyncResult.failure(SyncOutcome.NOT_CONFIGURED, NOT_CONFIGURED_MESSAGE)

        content = json.dumps(collection.to_dict(), indent=2, ensure_ascii=False)
        try:
            config, owner, name = self._require_config()
            path = config.file_path
            async with self._client_factory(config) as client:

                async def current_sha() -> str | None:
                    try:
                        remote = await client.get_file(owner, name, path)
                    except RemoteNotFoundError:
                        return None
                    return remote.sha

                async def write(sha: str | None) -> str:
                    message = f"Update {path} - {format_timestamp(datetime.now(UTC))}"
                    return await client.put_file(owner, name, path, content, message, sha)

                sha = await self._call("github:push:sha", current_sha)
                try:
                    await self._call("github:push", lambda: write(sha))
                except RemoteConflictError as e:
                    logger.warning(f"Remote {path} changed during push ({e}), retrying with fresh sha")
                    sha = await self._call("github:push:sha", current_sha)
                    await self._call("github:push", lambda: write(sha))
        except (RemoteError, ValidationError) as e:
            logger.error(f"GitHub sync push error: {e}")
            return _failure(e)

        synced_at = now_ms()
        logger.info(f"Pushed {len(collection.tasks)} todos to {config.repo}/{path}")
        return SyncResult(success=True, message="Sync successful", synced_at=synced_at)

    async def pull(self) -> SyncResult:
        """Download and parse the remote document.

        A missing remote file is reported as REMOTE_DATA_NOT_FOUND (nothing
        has been pushed yet), not as an error.
        """
        if not self.is_configured:
            return SyncResult.failure(SyncOutcome.NOT_CONFIGURED, NOT_CONFIGURED_MESSAGE)

        try:
            config, owner, name = self._require_config()
            async with self._client_factory(config) as client:
                remote = await self._call(
                    "github:pull", lambda: client.get_file(owner, name, config.file_path)
                )
            try:
                data = json.loads(remote.content)
            except json.JSONDecodeError as e:
                raise ParseError(f"invalid JSON: {e}") from e
            collection = TaskCollection.from_dict(data)
        except RemoteNotFoundError:
            logger.info("No remote data to pull yet")
            return SyncResult.failure(
                SyncOutcome.REMOTE_DATA_NOT_FOUND, "Remote data does not exist"
            )
        except (RemoteError, ValidationError, ParseError) as e:
            logger.error(f"GitHub sync pull error: {e}")
            return _failure(e)

        logger.info(f"Pulled {len(collection.tasks)} todos from {config.repo}")
        return SyncResult(
            success=True,
            message="Pull successful",
            synced_at=now_ms(),
            collection=collection,
        )
