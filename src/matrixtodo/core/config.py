"""Shared configuration for matrixtodo.

This module defines file-name constants, environment-driven defaults and the
RemoteConfig used by the GitHub client.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from matrixtodo.core.errors import ValidationError

DOCUMENT_VERSION = "1.0.0"
TODOS_FILE = "todos.json"
SETTINGS_FILE = "settings.json"
REMOTE_FILE_PATH = "todo.json"

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_REPO_DESCRIPTION = "Matrix Todo - task data sync"


def get_data_dir() -> Path:
    """Get the directory holding todos.json and settings.json.

    Returns:
        $MATRIXTODO_DATA_DIR if set, else ~/.matrixtodo.
    """
    configured = os.environ.get("MATRIXTODO_DATA_DIR")
    if configured:
        return Path(configured).expanduser().resolve()
    return Path.home() / ".matrixtodo"


def get_api_url() -> str:
    """Get the base URL of the GitHub REST API."""
    return os.environ.get("MATRIXTODO_GITHUB_API_URL", DEFAULT_API_URL)


def get_log_level() -> str:
    """Get the configured log level name."""
    return os.environ.get("MATRIXTODO_LOG_LEVEL", "INFO").upper()


@dataclass
class RemoteConfig:
    """Configuration for talking to the remote repository.

    Attributes:
        repo: Repository identifier in ``owner/name`` form (may be empty when
            only creating a repository).
        token: Pre-issued access token.
        api_url: Base URL of the REST API.
        timeout: Request timeout in seconds.
        file_path: Path of the task document inside the repository.
    """

    repo: str
    token: str
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    file_path: str = REMOTE_FILE_PATH

    def __post_init__(self) -> None:
        """Normalize API URL and repository identifier."""
        self.api_url = self.api_url.rstrip("/")
        self.repo = self.repo.strip().strip("/")

    @property
    def owner(self) -> str:
        """Repository owner."""
        return self.validate_repo()[0]

    @property
    def name(self) -> str:
        """Repository name."""
        return self.validate_repo()[1]

    def validate_repo(self) -> tuple[str, str]:
        """Split the repository identifier.

        Raises:
            ValidationError: If repo is not ``owner/name``.
        """
        parts = self.repo.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValidationError(f"Repository must be in owner/repo form, got {self.repo!r}")
        return parts[0], parts[1]
