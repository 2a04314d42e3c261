"""Retry handler with exponential backoff for remote API calls.

Wraps a single remote call with bounded exponential-backoff retry and jitter.
Only RetryableError and RateLimitError are retried; everything else (including
permanent not-found and access-denied errors) propagates on the first failure
without consuming retry budget.

Two tiers are used by the pipeline:

- standard: most describe/list calls
- throttled: permissions and tags calls, which the upstream API throttles
  far more aggressively (more retries, larger base delay)

Example usage:
    handler = RetryHandler(RetryConfig.throttled())

    permissions = await handler.execute(
        lambda: client.describe_dashboard_permissions("dash-1"),
        operation_name="describe_dashboard_permissions",
    )
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from quicksight_export.export.base.protocol import (
    MaxRetriesExceededError,
    RateLimitError,
    RetryableError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds before first retry (default: 0.1)
        max_delay: Cap on the exponential part of the delay (default: 5.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        jitter_factor: Random jitter as fraction of delay (default: 0.3)
    """

    max_retries: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.3

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base <= 1:
            raise ValueError("exponential_base must be > 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @classmethod
    def standard(cls) -> RetryConfig:
        """Default tier for describe and listing calls."""
        return cls(max_retries=3, base_delay=0.1, max_delay=5.0, jitter_factor=0.3)

    @classmethod
    def throttled(cls) -> RetryConfig:
        """Tier for heavily throttled calls (permissions, tags)."""
        return cls(max_retries=5, base_delay=1.0, max_delay=30.0, jitter_factor=0.3)


class RetryHandler:
    """Handles retry logic with exponential backoff and jitter.

    The delay before retry number ``attempt`` (0-indexed) is:

        delay = min(base_delay * exponential_base ** attempt, max_delay)
        delay += delay * jitter_factor * random()

    A ``retry_after`` hint on the error replaces the computed delay, capped at
    ``max_delay``.
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        """Initialize the retry handler.

        Args:
            config: Retry configuration. Uses the standard tier if not provided.
        """
        self.config = config or RetryConfig.standard()

    def calculate_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)
            retry_after: Server-specified delay, if any

        Returns:
            Delay in seconds before next retry
        """
        if retry_after is not None:
            return min(retry_after, self.config.max_delay)

        delay = min(
            self.config.base_delay * (self.config.exponential_base**attempt),
            self.config.max_delay,
        )
        jitter = delay * self.config.jitter_factor * random.random()  # noqa: S311
        return delay + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str = "operation",
        source: str | None = None,
    ) -> T:
        """Execute an async operation with automatic retry on failure.

        Args:
            operation: Async callable to execute (called once per attempt)
            operation_name: Name for logging purposes
            source: Asset type or component name for error context

        Returns:
            The result of the operation if successful

        Raises:
            MaxRetriesExceededError: If all retry attempts fail
            Exception: Any non-retryable exception from the operation
        """
        last_error: Exception | None = None
        total_delay = 0.0

        for attempt in range(self.config.max_retries + 1):
            try:
                result = await operation()
                if attempt > 0:
                    logger.info(
                        "%s succeeded after %d attempts (total delay: %.2fs)",
                        operation_name,
                        attempt + 1,
                        total_delay,
                    )
                return result

            except (RetryableError, RateLimitError) as e:
                last_error = e
                if attempt >= self.config.max_retries:
                    break

                delay = self.calculate_delay(attempt, e.retry_after)
                total_delay += delay

                kind = "rate limited" if isinstance(e, RateLimitError) else "failed"
                logger.warning(
                    "%s %s (attempt %d/%d): %s. Retrying in %.2fs",
                    operation_name,
                    kind,
                    attempt + 1,
                    self.config.max_retries + 1,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)

        raise MaxRetriesExceededError(
            f"{operation_name} failed after {self.config.max_retries + 1} attempts",
            attempts=self.config.max_retries + 1,
            last_error=last_error,
            source=source,
            cause=last_error,
        )
