"""Tests for the error taxonomy and the ObjectStore protocol."""

from __future__ import annotations

from typing import Any

from quicksight_export.clients.object_store import ObjectStore, S3ObjectStore
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


class TestExportError:
    """Tests for ExportError base class."""

    def test_basic_error(self) -> None:
        """Test error with message only."""
        error = ExportError("Something failed")

        assert str(error) == "Something failed"
        assert error.message == "Something failed"
        assert error.source is None
        assert error.asset_id is None
        assert error.cause is None

    def test_error_with_context(self) -> None:
        """Test context is appended to the string form."""
        cause = RuntimeError("boom")
        error = ExportError(
            "Describe failed", source="dashboard", asset_id="dash-1", cause=cause
        )

        assert str(error) == "Describe failed source=dashboard asset_id=dash-1"
        assert error.message == "Describe failed"
        assert error.cause is cause


class TestRetryableErrors:
    """Tests for transient error types."""

    def test_retryable_error(self) -> None:
        """Test status code and retry hint are kept."""
        error = RetryableError("Server error", status_code=503, retry_after=2.0)

        assert error.status_code == 503
        assert error.retry_after == 2.0
        assert isinstance(error, ExportError)

    def test_rate_limit_defaults(self) -> None:
        """Test RateLimitError has a default message."""
        error = RateLimitError()

        assert str(error) == "Rate limit exceeded"
        assert error.retry_after is None

    def test_max_retries_exceeded(self) -> None:
        """Test attempts and last error are recorded."""
        last = RateLimitError(retry_after=1.0)
        error = MaxRetriesExceededError("gave up", attempts=6, last_error=last)

        assert error.attempts == 6
        assert error.last_error is last


class TestPermanentErrors:
    """Tests for non-retryable remote errors."""

    def test_hierarchy(self) -> None:
        """Test not-found and access-denied are permanent remote errors."""
        for error in (ResourceNotFoundError("gone"), AccessDeniedError("no")):
            assert isinstance(error, PermanentError)
            assert isinstance(error, RemoteApiError)
            assert not isinstance(error, RetryableError)

    def test_remote_api_error_code(self) -> None:
        """Test the remote error code is kept."""
        error = RemoteApiError("bad", code="InvalidParameterValueException")

        assert error.code == "InvalidParameterValueException"


class TestListingError:
    """Tests for ListingError."""

    def test_counts(self) -> None:
        """Test invalid and total counts are recorded."""
        error = ListingError("too many invalid", invalid_count=6, total_count=10)

        assert error.invalid_count == 6
        assert error.total_count == 10


class TestStorageErrors:
    """Tests for storage error types."""

    def test_object_not_found(self) -> None:
        """Test ObjectNotFoundError carries bucket and key."""
        error = ObjectNotFoundError("missing", bucket="b", key="k.json")

        assert isinstance(error, StorageError)
        assert error.bucket == "b"
        assert error.key == "k.json"


class TestObjectStoreProtocol:
    """Tests for the runtime-checkable ObjectStore protocol."""

    def test_s3_store_conforms(self) -> None:
        """Test the S3 implementation satisfies the protocol."""
        assert isinstance(S3ObjectStore(client=object()), ObjectStore)

    def test_custom_store_conforms(self) -> None:
        """Test any class with the five store methods conforms."""

        class DictStore:
            async def get(self, bucket: str, key: str) -> Any:
                return None

            async def put(self, bucket: str, key: str, obj: Any) -> None:
                pass

            async def exists(self, bucket: str, key: str) -> bool:
                return False

            async def list_keys(self, bucket: str, prefix: str) -> list[str]:
                return []

            async def delete(self, bucket: str, key: str) -> None:
                pass

        assert isinstance(DictStore(), ObjectStore)

    def test_partial_implementation_fails(self) -> None:
        """Test a class missing methods does not conform."""

        class ReadOnlyStore:
            async def get(self, bucket: str, key: str) -> Any:
                return None

        assert not isinstance(ReadOnlyStore(), ObjectStore)
