"""Error taxonomy shared by the export pipeline.

Errors are classified by how the pipeline reacts to them:

- RetryableError / RateLimitError: transient, retried by RetryHandler
- PermanentError (ResourceNotFoundError, AccessDeniedError): the resource is
  gone or hidden; callers treat it as "no data"
- RemoteApiError: any other remote failure, propagated without retry
- ListingError: a listing is too corrupt to publish, fails the asset type
- StorageError / ObjectNotFoundError: object store failures

Example usage:
    try:
        detail = await client.describe_dashboard("dash-1")
    except ResourceNotFoundError:
        detail = {}
"""

from __future__ import annotations

from typing import Any


class ExportError(Exception):
    """Base exception for export pipeline errors."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        asset_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the export error.

        Args:
            message: Human-readable error description
            source: Operation or asset type where the error occurred
            asset_id: Asset ID if the error is asset-specific
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.source = source
        self.asset_id = asset_id
        self.cause = cause

    @property
    def message(self) -> str:
        """The bare error message without context suffixes."""
        return super().__str__()

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.source:
            parts.append(f"source={self.source}")
        if self.asset_id:
            parts.append(f"asset_id={self.asset_id}")
        return " ".join(parts)


class RetryableError(ExportError):
    """Transient remote failure (5xx, timeouts, dropped connections)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.retry_after = retry_after


class RateLimitError(ExportError):
    """Raised when the remote API throttles a request."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class MaxRetriesExceededError(ExportError):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Exception | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.last_error = last_error


class RemoteApiError(ExportError):
    """Non-retryable failure reported by the remote API (e.g. bad request)."""

    def __init__(self, message: str, code: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.code = code


class PermanentError(RemoteApiError):
    """The resource cannot be read and retrying will not help."""

    pass


class ResourceNotFoundError(PermanentError):
    """The resource was deleted between listing and detail fetch."""

    pass


class AccessDeniedError(PermanentError):
    """The caller is not allowed to read the resource."""

    pass


class ListingError(ExportError):
    """Raised when a listing cannot be trusted and the asset type must fail."""

    def __init__(
        self,
        message: str,
        invalid_count: int = 0,
        total_count: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.invalid_count = invalid_count
        self.total_count = total_count


class StorageError(ExportError):
    """Raised when an object store operation fails."""

    def __init__(
        self,
        message: str,
        bucket: str | None = None,
        key: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.bucket = bucket
        self.key = key


class ObjectNotFoundError(StorageError):
    """Raised by ObjectStore.get when the key does not exist."""

    pass
