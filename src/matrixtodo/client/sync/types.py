"""Result types for sync operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from matrixtodo.core.models import TaskCollection
from matrixtodo.core.types import SyncOutcome


@dataclass
class SyncResult:
    """Outcome of a remote sync call.

    Sync never raises to its caller: every failure becomes a result with
    ``success=False`` and a human-readable message.

    Attributes:
        success: Whether the call did what was asked.
        message: Message suitable for the user.
        outcome: Machine-readable outcome.
        synced_at: Completion time in ms (successful push/pull).
        collection: Pulled document (successful pull).
        repo: Full repository name (successful repository creation).
    """

    success: bool
    message: str
    outcome: SyncOutcome = SyncOutcome.OK
    synced_at: int | None = None
    collection: TaskCollection | None = None
    repo: str | None = None

    @classmethod
    def failure(cls, outcome: SyncOutcome, message: str) -> SyncResult:
        """Build a failed result."""
        return cls(success=False, message=message, outcome=outcome)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the boundary result shape."""
        data: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "outcome": self.outcome.value,
        }
        if self.synced_at is not None:
            data["lastSyncTime"] = self.synced_at
        if self.collection is not None:
            data["data"] = self.collection.to_dict()
        if self.repo is not None:
            data["repo"] = self.repo
        return data
