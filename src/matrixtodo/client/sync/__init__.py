"""Remote synchronization of the task document.

Architecture:
    SyncOrchestrator → RemoteSync → GitHubClient

Components:
- **RemoteSync**: push/pull of one JSON file, last-write-wins
- **SyncOrchestrator**: pull on start, push on exit, manual sync
- **retry_with_backoff / RetryPolicy**: shared exponential backoff
"""

from matrixtodo.client.sync.orchestrator import SyncOrchestrator
from matrixtodo.client.sync.remote import RemoteSync
from matrixtodo.client.sync.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_RETRIES,
    RetryPolicy,
    retry_with_backoff,
)
from matrixtodo.client.sync.types import SyncResult

__all__ = [
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_RETRIES",
    "RemoteSync",
    "RetryPolicy",
    "SyncOrchestrator",
    "SyncResult",
    "retry_with_backoff",
]
