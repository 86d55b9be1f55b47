"""Retry logic with exponential backoff.

This module provides:
- retry_with_backoff: Await an operation, retrying failures with exponential backoff
- RetryPolicy: Bundled retry parameters shared by the repository and remote sync

The delay before retry ``n`` (0-based) is ``base_delay * 2**n``, so with the
defaults an operation that fails twice and then succeeds waits 1s + 2s.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
BACKOFF_MULTIPLIER = 2

Sleep = Callable[[float], Awaitable[object]]


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Sleep | None = None,
    label: str = "operation",
) -> T:
    """Await an operation with exponential backoff retry.

    Args:
        operation: Zero-argument coroutine function to execute.
        max_retries: Maximum number of retry attempts after the first one.
        base_delay: Delay before the first retry, in seconds.
        retryable_exceptions: Exception types that trigger a retry.
        sleep: Coroutine used to wait between attempts (asyncio.sleep when None).
        label: Name used in log messages.

    Returns:
        Result of the operation.

    Raises:
        The last exception if all retries fail, or any non-retryable exception
        immediately.
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except retryable_exceptions as e:
            logger.warning(f"{label}: attempt {attempt + 1}/{max_retries + 1} failed: {e}")
            if attempt == max_retries:
                logger.error(f"{label}: all {max_retries} retries failed")
                raise

            delay = base_delay * BACKOFF_MULTIPLIER**attempt
            logger.info(f"{label}: retrying in {delay:.1f}s...")
            await (sleep or asyncio.sleep)(delay)

    # max_retries < 0
    raise ValueError("max_retries must be >= 0")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters for a class of operations.

    Attributes:
        max_retries: Retries after the first attempt (0 disables retrying).
        base_delay: Delay before the first retry, in seconds.
        retryable_exceptions: Exception types that trigger a retry.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "operation",
        sleep: Sleep | None = None,
    ) -> T:
        """Execute an operation under this policy."""
        return await retry_with_backoff(
            operation,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            retryable_exceptions=self.retryable_exceptions,
            sleep=sleep,
            label=label,
        )

