"""Base export components.

This module provides the foundational components shared by every processor:
- Error taxonomy (retryable, permanent, listing and storage errors)
- RetryHandler with exponential backoff and two retry tiers
- ConcurrencyLimiter for bounded asyncio fan-out
- RateLimiter for API request throttling
- Paginator for cursor-based listings
- validate_and_map listing gate
"""

from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.export.base.pagination import (
    MAX_PAGE_SIZE,
    Page,
    PaginationResult,
    Paginator,
)
from quicksight_export.export.base.protocol import (
    AccessDeniedError,
    ExportError,
    ListingError,
    MaxRetriesExceededError,
    ObjectNotFoundError,
    PermanentError,
    RateLimitError,
    RemoteApiError,
    ResourceNotFoundError,
    RetryableError,
    StorageError,
)
from quicksight_export.export.base.rate_limiter import RateLimiter, TokenBucket
from quicksight_export.export.base.retry_handler import RetryConfig, RetryHandler
from quicksight_export.export.base.validation import (
    MAX_INVALID_ITEM_RATIO,
    validate_and_map,
)

__all__ = [
    "MAX_INVALID_ITEM_RATIO",
    "MAX_PAGE_SIZE",
    "AccessDeniedError",
    "ConcurrencyLimiter",
    "ExportError",
    "ListingError",
    "MaxRetriesExceededError",
    "ObjectNotFoundError",
    "Page",
    "PaginationResult",
    "Paginator",
    "PermanentError",
    "RateLimitError",
    "RateLimiter",
    "RemoteApiError",
    "ResourceNotFoundError",
    "RetryConfig",
    "RetryHandler",
    "RetryableError",
    "StorageError",
    "TokenBucket",
    "validate_and_map",
]
