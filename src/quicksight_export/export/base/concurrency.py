"""Bounded-concurrency executor for asyncio fan-out.

Every layer of the pipeline owns one of these with an independently
configured limit (global API calls, assets per type, sub-fetches per asset,
page fetches, object-store writes during flush). Each limiter is shared by
all tasks of its layer, never created per task.

Example usage:
    limiter = ConcurrencyLimiter(10, name="dashboards")

    results = await limiter.map(summaries, processor_fn)

    async with limiter:
        await client.describe_dashboard("dash-1")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyLimiter:
    """Semaphore-backed limiter tracking in-flight and peak concurrency.

    Attributes:
        limit: Maximum number of concurrently running operations
        name: Label used in log messages
    """

    def __init__(self, limit: int, name: str = "default") -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.name = name
        self._semaphore = asyncio.Semaphore(limit)
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        """Number of operations currently holding a slot."""
        return self._in_flight

    @property
    def peak(self) -> int:
        """Highest in-flight count observed since creation."""
        return self._peak

    async def __aenter__(self) -> ConcurrencyLimiter:
        await self._semaphore.acquire()
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)
        return self

    async def __aexit__(self, *args: object) -> None:
        self._in_flight -= 1
        self._semaphore.release()

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run one operation once a slot is free."""
        async with self:
            return await operation()

    async def map(
        self,
        items: Iterable[T],
        fn: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        """Apply ``fn`` to every item with at most ``limit`` running at once.

        Results are returned in input order. The first exception propagates
        once all tasks have finished; callers that must isolate failures
        catch inside ``fn`` or use ``map_settled``.
        """
        results = await self.map_settled(items, fn)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results  # type: ignore[return-value]

    async def map_settled(
        self,
        items: Iterable[T],
        fn: Callable[[T], Awaitable[R]],
    ) -> list[R | BaseException]:
        """Like ``map`` but returns exceptions in place of failed results."""
        item_list = list(items)
        if not item_list:
            return []

        async def _guarded(item: T) -> R:
            async with self:
                return await fn(item)

        logger.debug(
            "Limiter %s dispatching %d operations (limit=%d)",
            self.name,
            len(item_list),
            self.limit,
        )
        gathered: list[Any] = await asyncio.gather(
            *(_guarded(item) for item in item_list),
            return_exceptions=True,
        )
        return gathered
