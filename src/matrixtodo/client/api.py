"""HTTP client for the GitHub REST API.

This module provides:
- GitHubClient: Async client for the few repository/contents endpoints we use
- RemoteFile: A file fetched from a repository, with its version token (sha)
- RemoteError and subclasses: Typed failures mapped from HTTP status codes
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from matrixtodo.core.config import DEFAULT_REPO_DESCRIPTION, RemoteConfig

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class RemoteError(Exception):
    """Base exception for remote API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteAuthError(RemoteError):
    """Token missing, invalid or lacking permissions."""


class RemoteNotFoundError(RemoteError):
    """Repository or file not found."""


class RemoteConflictError(RemoteError):
    """Conditional write rejected (stale or missing sha)."""


class RemoteUnavailableError(RemoteError):
    """Network failure, timeout or server-side error."""


@dataclass
class RemoteFile:
    """File content fetched from a repository.

    Attributes:
        path: Path inside the repository.
        sha: Version token required to update the file.
        content: Decoded UTF-8 content.
    """

    path: str
    sha: str
    content: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFile:
        """Create from a contents API response.

        Raises:
            RemoteError: If the response is not a base64-encoded file.
        """
        if not isinstance(data, dict) or "content" not in data or "sha" not in data:
            raise RemoteError("Remote path is not a file")
        encoding = data.get("encoding", "base64")
        if encoding != "base64":
            raise RemoteError(f"Unsupported content encoding: {encoding}")
        try:
            # The API wraps base64 content at 60 characters
            raw = base64.b64decode("".join(data["content"].split()), validate=True)
            content = raw.decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise RemoteError(f"Cannot decode remote file: {e}") from e
        return cls(path=data.get("path", ""), sha=data["sha"], content=content)


class GitHubClient:
    """Async HTTP client for the GitHub REST API."""

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Repository, token and connection settings.
            transport: Optional transport (used to plug in a fake server).
        """
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
        )

    @property
    def config(self) -> RemoteConfig:
        """Client configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.aclose()

    @staticmethod
    def _error_detail(response: httpx.Response, default: str) -> str:
        """Extract the API's error message, if any."""
        try:
            data = response.json()
        except ValueError:
            return default
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return default

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        status = response.status_code
        if status in (401, 403):
            raise RemoteAuthError(self._error_detail(response, "Authentication failed"), status)
        if status == 404:
            raise RemoteNotFoundError(self._error_detail(response, "Not Found"), status)
        if status in (409, 422):
            raise RemoteConflictError(self._error_detail(response, "Conflict"), status)
        if status >= 500:
            raise RemoteUnavailableError(self._error_detail(response, "Server error"), status)
        if status >= 400:
            raise RemoteError(self._error_detail(response, "Unknown error"), status)
        return response

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to RemoteUnavailableError."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise RemoteUnavailableError(f"Cannot reach {self._config.api_url}: {e}") from e
        return self._handle_response(response)

    # === Repository operations ===

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """Get repository metadata.

        Raises:
            RemoteNotFoundError: If the repository doesn't exist (or is hidden).
        """
        response = await self._request("GET", f"/repos/{owner}/{repo}")
        result: dict[str, Any] = response.json()
        return result

    async def create_repository(
        self,
        name: str,
        private: bool = True,
        description: str = DEFAULT_REPO_DESCRIPTION,
        auto_init: bool = True,
    ) -> dict[str, Any]:
        """Create a repository for the authenticated user.

        Args:
            name: Repository name.
            private: Whether the repository is private.
            description: Repository description.
            auto_init: Seed the repository with an initial commit.

        Returns:
            Repository metadata (``full_name`` is ``owner/name``).
        """
        response = await self._request(
            "POST",
            "/user/repos",
            json={
                "name": name,
                "private": private,
                "description": description,
                "auto_init": auto_init,
            },
        )
        result: dict[str, Any] = response.json()
        return result

    # === Contents operations ===

    async def get_file(self, owner: str, repo: str, path: str) -> RemoteFile:
        """Get a file and its sha.

        Raises:
            RemoteNotFoundError: If the file doesn't exist.
        """
        response = await self._request("GET", f"/repos/{owner}/{repo}/contents/{path}")
        return RemoteFile.from_dict(response.json())

    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> str:
        """Create or replace a file.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path inside the repository.
            content: New UTF-8 content.
            message: Commit message.
            sha: Current sha of the file; required to replace an existing file,
                omitted to create a new one.

        Returns:
            The new sha of the file.

        Raises:
            RemoteConflictError: If ``sha`` does not match the current file.
        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha is not None:
            body["sha"] = sha
        response = await self._request(
            "PUT", f"/repos/{owner}/{repo}/contents/{path}", json=body
        )
        data = response.json()
        return str(data.get("content", {}).get("sha", ""))
