"""Cursor-based pagination over remote listing calls.

Pages are fetched strictly sequentially because every request depends on the
previous page's cursor. Each page request goes through the retry handler and
the page-fetch concurrency limiter (the limiter is shared by every listing in
flight, so several asset types can list at once without exceeding the cap).

Example usage:
    paginator = Paginator(retry_handler, page_limiter, page_size=100)

    result = await paginator.fetch_all(
        lambda cursor, size: client.list_page(AssetType.DASHBOARD, cursor, size),
        operation_name="list_dashboards",
    )
    print(len(result.items), result.total_pages)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.export.base.retry_handler import RetryHandler

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page returned by a listing call.

    Attributes:
        items: Items on this page
        next_cursor: Cursor for the next page, None (or empty) when exhausted
    """

    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass(frozen=True, slots=True)
class PaginationResult(Generic[T]):
    """Accumulated result of a full listing.

    Attributes:
        items: All items from every page, in page order
        total_pages: Number of pages fetched (always >= 1)
        duration_seconds: Wall time spent listing
    """

    items: list[T]
    total_pages: int
    duration_seconds: float = 0.0

    @property
    def total_items(self) -> int:
        return len(self.items)


class Paginator:
    """Drives a ``(cursor, page_size) -> Page`` function until exhausted."""

    def __init__(
        self,
        retry_handler: RetryHandler | None = None,
        limiter: ConcurrencyLimiter | None = None,
        *,
        page_size: int = MAX_PAGE_SIZE,
        progress_log_interval: int = 10,
    ) -> None:
        """Initialize the paginator.

        Args:
            retry_handler: Retry wrapper applied to each page request
            limiter: Page-fetch limiter shared across listings
            page_size: Requested page size, clamped to MAX_PAGE_SIZE
            progress_log_interval: Log progress every N pages
        """
        self.retry_handler = retry_handler or RetryHandler()
        self.limiter = limiter or ConcurrencyLimiter(5, name="page-fetch")
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self.progress_log_interval = max(1, progress_log_interval)

    async def fetch_all(
        self,
        fetch_page: Callable[[str | None, int], Awaitable[Page[Any]]],
        *,
        operation_name: str = "list",
        map_page: Callable[[list[Any]], list[T]] | None = None,
        source: str | None = None,
    ) -> PaginationResult[T]:
        """Fetch every page and accumulate the items.

        Args:
            fetch_page: Async function fetching one page for a cursor
            operation_name: Name for logging and retry context
            map_page: Optional per-page transform (e.g. validation gate);
                exceptions it raises abort the listing
            source: Asset type or component name for error context

        Returns:
            PaginationResult with all items and the page count

        Raises:
            MaxRetriesExceededError: If a page request exhausts its retries
            Exception: Non-retryable fetch errors or map_page errors
        """
        start = time.monotonic()
        items: list[T] = []
        cursor: str | None = None
        total_pages = 0

        while True:
            page_cursor = cursor

            async def _fetch() -> Page[Any]:
                async with self.limiter:
                    return await fetch_page(page_cursor, self.page_size)

            page = await self.retry_handler.execute(
                _fetch,
                operation_name=f"{operation_name} page {total_pages + 1}",
                source=source,
            )
            total_pages += 1

            page_items = list(page.items)
            items.extend(map_page(page_items) if map_page else page_items)

            if total_pages % self.progress_log_interval == 0:
                logger.info(
                    "%s: fetched %d pages (%d items so far)",
                    operation_name,
                    total_pages,
                    len(items),
                )

            cursor = page.next_cursor
            if not cursor:
                break

        duration = time.monotonic() - start
        logger.debug(
            "%s: pagination complete (%d pages, %d items, %.2fs)",
            operation_name,
            total_pages,
            len(items),
            duration,
        )
        return PaginationResult(
            items=items, total_pages=total_pages, duration_seconds=duration
        )
