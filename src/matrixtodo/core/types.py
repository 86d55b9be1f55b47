"""Shared enums for matrixtodo."""

from __future__ import annotations

from enum import Enum

from matrixtodo.core.errors import ValidationError


class Quadrant(str, Enum):
    """One of the four Eisenhower matrix buckets."""

    URGENT_IMPORTANT = "urgent-important"
    NOT_URGENT_IMPORTANT = "not-urgent-important"
    URGENT_NOT_IMPORTANT = "urgent-not-important"
    NOT_URGENT_NOT_IMPORTANT = "not-urgent-not-important"

    @classmethod
    def parse(cls, value: str | Quadrant) -> Quadrant:
        """Parse a wire value, raising ValidationError for unknown quadrants."""
        if isinstance(value, Quadrant):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown quadrant: {value!r}") from None


class SyncOutcome(str, Enum):
    """Distinguishable outcome of a remote sync call."""

    OK = "ok"
    NOT_CONFIGURED = "not_configured"
    REPO_NOT_FOUND = "repo_not_found"
    REMOTE_DATA_NOT_FOUND = "remote_data_not_found"
    AUTH_ERROR = "auth_error"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    PARSE_ERROR = "parse_error"
    STORAGE_ERROR = "storage_error"
    ERROR = "error"
