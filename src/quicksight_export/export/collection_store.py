"""In-memory batches for collection-stored asset types.

Users, groups and folders are persisted as one object per type
(``assets/organization/{type}.json``) holding every asset observed during
the run. Asset tasks add their record to the batch for that key; after all
tasks for the run finish the coordinator flushes every dirty batch, writing
the whole map and discarding the batch.

Batches always start empty and are never seeded from the stored object, so
each flush is a full rebuild: assets deleted upstream disappear from the
stored collection.

Example usage:
    store = CollectionStore()

    await store.add("bucket-a", "assets/organization/users.json", "user-1", record)
    await store.flush_all(object_store)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from quicksight_export.export.base.concurrency import ConcurrencyLimiter

if TYPE_CHECKING:
    from quicksight_export.clients.object_store import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class CollectionBatch:
    """Pending records for one collection object.

    Attributes:
        bucket: Target bucket
        collection_key: Target object key
        data: Records keyed by asset ID
        is_dirty: True once a record has been added since the last flush
    """

    bucket: str
    collection_key: str
    data: dict[str, Any] = field(default_factory=dict)
    is_dirty: bool = False

    @property
    def size(self) -> int:
        return len(self.data)


def batch_key(bucket: str, collection_key: str) -> str:
    return f"{bucket}:{collection_key}"


class CollectionStore:
    """Registry of collection batches owned by one export run.

    ``add`` and ``flush_all`` share one asyncio lock: get-or-create plus insert
    is atomic, and a flush holds the lock from enumerating dirty batches until
    they are written and removed, so no record can be added to a batch that
    is mid-flush.
    """

    def __init__(self, flush_limiter: ConcurrencyLimiter | None = None) -> None:
        """Initialize an empty registry.

        Args:
            flush_limiter: Bounds concurrent object store writes during flush
        """
        self._batches: dict[str, CollectionBatch] = {}
        self._lock = asyncio.Lock()
        self.flush_limiter = flush_limiter or ConcurrencyLimiter(3, name="collection-flush")

    async def add(
        self,
        bucket: str,
        collection_key: str,
        asset_id: str,
        record: Any,
    ) -> None:
        """Insert or replace one asset's record in its collection batch."""
        async with self._lock:
            key = batch_key(bucket, collection_key)
            batch = self._batches.get(key)
            if batch is None:
                batch = CollectionBatch(bucket=bucket, collection_key=collection_key)
                self._batches[key] = batch
            batch.data[asset_id] = record
            batch.is_dirty = True

    def get_batch(self, bucket: str, collection_key: str) -> CollectionBatch | None:
        return self._batches.get(batch_key(bucket, collection_key))

    def register(self, batch: CollectionBatch) -> None:
        """Register a pre-built batch (used to restore or inspect state)."""
        self._batches[batch_key(batch.bucket, batch.collection_key)] = batch

    @property
    def pending_keys(self) -> list[str]:
        """Registry keys of all batches, dirty or clean."""
        return list(self._batches)

    def __len__(self) -> int:
        return len(self._batches)

    async def flush_all(self, object_store: ObjectStore) -> int:
        """Write every dirty batch and remove it from the registry.

        Clean batches are neither written nor removed. A failed write
        propagates after all writes have been attempted; batches whose write
        failed stay registered so a later flush can retry them.

        Returns:
            Number of batches written

        Raises:
            Exception: The first write failure
        """
        async with self._lock:
            dirty = [(k, b) for k, b in self._batches.items() if b.is_dirty]
            if not dirty:
                logger.debug("No dirty collection batches to flush")
                return 0

            async def _write(item: tuple[str, CollectionBatch]) -> str:
                key, batch = item
                await object_store.put(batch.bucket, batch.collection_key, dict(batch.data))
                logger.info(
                    "Flushed %d records to %s/%s",
                    batch.size,
                    batch.bucket,
                    batch.collection_key,
                )
                return key

            outcomes = await self.flush_limiter.map_settled(dirty, _write)

            first_error: BaseException | None = None
            written = 0
            for (key, batch), outcome in zip(dirty, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    logger.error(
                        "Failed to flush collection %s/%s: %s",
                        batch.bucket,
                        batch.collection_key,
                        outcome,
                    )
                    first_error = first_error or outcome
                    continue
                del self._batches[key]
                written += 1

            if first_error is not None:
                raise first_error
            return written

    def clear(self) -> None:
        """Drop every batch without writing it."""
        self._batches.clear()
