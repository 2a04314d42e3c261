"""Object store access for persisted asset records.

The pipeline reads, writes and checks single keys, and lists and deletes keys
when archiving records of removed assets. Records are
serialized as JSON with sorted keys so identical content produces identical
bytes, and every put replaces the whole object.

Example usage:
    store = S3ObjectStore(region="us-east-1")

    await store.put("my-bucket", "assets/dashboards/d-1.json", record)
    record = await store.get("my-bucket", "assets/dashboards/d-1.json")
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol, runtime_checkable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.export.base.protocol import ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


@runtime_checkable
class ObjectStore(Protocol):
    """Async key/object store used by the export pipeline."""

    async def get(self, bucket: str, key: str) -> Any:
        """Return the decoded object.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageError: On any other failure
        """
        ...

    async def put(self, bucket: str, key: str, obj: Any) -> None:
        """Write ``obj`` to ``key``, replacing any existing object."""
        ...

    async def exists(self, bucket: str, key: str) -> bool: ...

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        """Return every key below ``prefix``."""
        ...

    async def delete(self, bucket: str, key: str) -> None: ...


def serialize(obj: Any) -> bytes:
    """Deterministic JSON encoding used for every stored object."""
    return json.dumps(obj, sort_keys=True, indent=2, default=str).encode("utf-8")


class S3ObjectStore:
    """ObjectStore backed by Amazon S3.

    boto3 is blocking, so every call runs in a worker thread. Puts are
    bounded by the write limiter.
    """

    def __init__(
        self,
        client: Any | None = None,
        region: str | None = None,
        *,
        write_limiter: ConcurrencyLimiter | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            client: Pre-built boto3 S3 client (mainly for tests)
            region: AWS region used when creating the client
            write_limiter: Bounds concurrent put_object calls
        """
        self._client = client or boto3.client("s3", region_name=region)
        self.write_limiter = write_limiter or ConcurrencyLimiter(10, name="store-writes")

    async def get(self, bucket: str, key: str) -> Any:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=bucket, Key=key
            )
            body = await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    f"Object not found: s3://{bucket}/{key}", bucket=bucket, key=key
                ) from e
            raise StorageError(
                f"Failed to read s3://{bucket}/{key}: {code}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise StorageError(
                f"Failed to read s3://{bucket}/{key}", bucket=bucket, key=key, cause=e
            ) from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise StorageError(
                f"Object s3://{bucket}/{key} is not valid JSON",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

    async def put(self, bucket: str, key: str, obj: Any) -> None:
        body = serialize(obj)
        try:
            async with self.write_limiter:
                await asyncio.to_thread(
                    self._client.put_object,
                    Bucket=bucket,
                    Key=key,
                    Body=body,
                    ContentType="application/json",
                )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to write s3://{bucket}/{key}", bucket=bucket, key=key, cause=e
            ) from e
        logger.debug("Wrote s3://%s/%s (%d bytes)", bucket, key, len(body))

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _NOT_FOUND_CODES:
                return False
            raise StorageError(
                f"Failed to check s3://{bucket}/{key}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e
        return True

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        def _list() -> list[str]:
            paginator = self._client.get_paginator("list_objects_v2")
            return [
                obj["Key"]
                for page in paginator.paginate(Bucket=bucket, Prefix=prefix)
                for obj in page.get("Contents", [])
            ]

        try:
            return await asyncio.to_thread(_list)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to list s3://{bucket}/{prefix}",
                bucket=bucket,
                key=prefix,
                cause=e,
            ) from e

    async def delete(self, bucket: str, key: str) -> None:
        try:
            async with self.write_limiter:
                await asyncio.to_thread(
                    self._client.delete_object, Bucket=bucket, Key=key
                )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to delete s3://{bucket}/{key}", bucket=bucket, key=key, cause=e
            ) from e
        logger.debug("Deleted s3://%s/%s", bucket, key)
