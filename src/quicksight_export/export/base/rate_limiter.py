"""Request-rate limiter for remote API calls using a token bucket.

The concurrency limiter bounds how many calls are in flight; this limiter
bounds how many calls start per second. QuickSight enforces request rates
per API operation, so the client keys the general limiter by operation name;
permissions endpoints are much stricter and share one global bucket.

Example usage:
    permissions = RateLimiter(requests_per_second=2.0)
    await permissions.wait()

    # One bucket per operation:
    limiter = RateLimiter(requests_per_second=10.0, per_key=True)
    await limiter.wait("list_dashboards")
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field


@dataclass
class TokenBucket:
    """Token bucket refilled at a constant rate up to ``capacity``.

    Attributes:
        capacity: Maximum number of tokens the bucket can hold
        refill_rate: Tokens added per second
        tokens: Current number of tokens available
        last_refill: Monotonic timestamp of last refill
    """

    capacity: float
    refill_rate: float
    tokens: float = field(init=False)
    last_refill: float = field(init=False)

    def __post_init__(self) -> None:
        self.tokens = self.capacity
        self.last_refill = time.monotonic()

    def refill(self) -> None:
        now = time.monotonic()
        self.tokens = min(
            self.capacity, self.tokens + (now - self.last_refill) * self.refill_rate
        )
        self.last_refill = now

    def try_consume(self) -> bool:
        """Consume one token if available.

        Returns:
            True if a token was consumed.
        """
        self.refill()
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False

    def time_until_available(self) -> float:
        """Seconds until one token is available (0.0 if available now)."""
        self.refill()
        if self.tokens >= 1.0:
            return 0.0
        return (1.0 - self.tokens) / self.refill_rate


class RateLimiter:
    """Async token-bucket rate limiter, global or keyed.

    Attributes:
        requests_per_second: Sustained request rate
        burst_size: Maximum burst capacity (defaults to requests_per_second)
        per_key: If True, each key passed to wait() gets its own bucket
    """

    def __init__(
        self,
        requests_per_second: float = 10.0,
        burst_size: float | None = None,
        per_key: bool = False,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")

        self.requests_per_second = requests_per_second
        self.burst_size = burst_size if burst_size is not None else requests_per_second
        self.per_key = per_key

        self._lock = asyncio.Lock()
        self._global_bucket = TokenBucket(
            capacity=self.burst_size,
            refill_rate=self.requests_per_second,
        )
        self._key_buckets: dict[str, TokenBucket] = {}

    def _get_bucket(self, key: str | None = None) -> TokenBucket:
        if not self.per_key or key is None:
            return self._global_bucket

        if key not in self._key_buckets:
            self._key_buckets[key] = TokenBucket(
                capacity=self.burst_size,
                refill_rate=self.requests_per_second,
            )
        return self._key_buckets[key]

    async def wait(self, key: str | None = None) -> float:
        """Wait until a request is allowed.

        Args:
            key: Bucket key when per_key is enabled

        Returns:
            Time waited in seconds
        """
        total_wait = 0.0

        async with self._lock:
            bucket = self._get_bucket(key)

            while not bucket.try_consume():
                wait_time = bucket.time_until_available()
                if wait_time > 0:
                    total_wait += wait_time
                    # Release lock while sleeping
                    self._lock.release()
                    try:
                        await asyncio.sleep(wait_time)
                    finally:
                        await self._lock.acquire()

        return total_wait
