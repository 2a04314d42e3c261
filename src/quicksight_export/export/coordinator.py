"""Export coordinator: lists, filters and processes asset types.

For one asset type the coordinator:

1. lists every asset through the paginator and the validation gate,
2. decides which assets need processing (force refresh and metadata-only
   refreshes process everything; otherwise the strategy's change detection
   compares against the stored record),
3. fans out AssetProcessor.process under the per-type limiter,
4. moves stored records of individually stored assets that the listing no
   longer returns (or returns as deleted) below the archive prefix.

A full export processes types sequentially in a fixed order and flushes the
collection batches once, after every type has finished.

Example usage:
    coordinator = ExportCoordinator.from_settings()

    summary = await coordinator.export(
        [AssetType.DASHBOARD, AssetType.USER],
        refresh_options=RefreshOptions.permissions_only(),
    )
    print(summary.total_successful, summary.total_failed)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from quicksight_export.clients.object_store import S3ObjectStore
from quicksight_export.clients.quicksight import QuickSightClient
from quicksight_export.config.settings import ExportSettings, get_settings
from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.export.base.pagination import Paginator
from quicksight_export.export.base.rate_limiter import RateLimiter
from quicksight_export.export.base.retry_handler import RetryHandler
from quicksight_export.export.base.validation import validate_and_map
from quicksight_export.export.collection_store import CollectionStore
from quicksight_export.export.processors.ingestion import IngestionProcessor
from quicksight_export.export.processors.registry import StrategyRegistry
from quicksight_export.models.assets import (
    AssetSummary,
    AssetType,
    ProcessingContext,
    RefreshOptions,
    StorageType,
)
from quicksight_export.models.summary import AssetTypeSummary, ExportSummary
from quicksight_export.utils.storage_keys import archive_key, individual_prefix

if TYPE_CHECKING:
    from quicksight_export.clients.object_store import ObjectStore
    from quicksight_export.export.processors.base import AssetProcessor
    from quicksight_export.models.ingestion import IngestionProcessingResult
    from quicksight_export.models.summary import ProcessingResult

logger = logging.getLogger(__name__)


class ExportCoordinator:
    """Drives asset processors for one export run.

    The coordinator owns the run's CollectionStore; a new coordinator (or
    clear_batches()) starts from empty batches.
    """

    def __init__(
        self,
        client: Any,
        object_store: ObjectStore,
        *,
        bucket: str | None = None,
        settings: ExportSettings | None = None,
        collection_store: CollectionStore | None = None,
        paginator: Paginator | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client: Remote API client (QuickSightClient or compatible)
            object_store: Store for records
            bucket: Target bucket (defaults to settings.bucket)
            settings: Export settings (defaults to get_settings())
            collection_store: Run-owned collection batches
            paginator: Listing paginator
        """
        self.settings = settings or get_settings()
        self.client = client
        self.object_store = object_store
        self.bucket = bucket or self.settings.bucket
        self.collection_store = collection_store or CollectionStore(
            ConcurrencyLimiter(
                self.settings.store_max_concurrent_flush_writes, name="collection-flush"
            )
        )
        self.paginator = paginator or Paginator(
            RetryHandler(self.settings.pagination_retry_config()),
            ConcurrencyLimiter(self.settings.concurrency_page_fetch, name="page-fetch"),
            page_size=self.settings.page_size,
            progress_log_interval=self.settings.progress_log_interval,
        )
        self.read_limiter = ConcurrencyLimiter(
            self.settings.store_max_concurrent_reads, name="store-reads"
        )
        self._processors: dict[AssetType, AssetProcessor] = {}
        self._listed: dict[AssetType, list[AssetSummary]] = {}

    @classmethod
    def from_settings(cls, settings: ExportSettings | None = None) -> ExportCoordinator:
        """Build a coordinator with boto3-backed QuickSight and S3 clients."""
        settings = settings or get_settings()
        client = QuickSightClient(
            settings.aws_account_id,
            settings.aws_region,
            limiter=ConcurrencyLimiter(settings.concurrency_operations, name="quicksight-api"),
            rate_limiter=RateLimiter(
                settings.api_requests_per_second,
                burst_size=settings.api_burst_size,
                per_key=True,
            ),
            permissions_rate_limiter=RateLimiter(
                settings.permissions_requests_per_second,
                burst_size=settings.permissions_burst_size,
            ),
            retry_handler=RetryHandler(settings.api_retry_config()),
            throttled_retry_handler=RetryHandler(settings.throttled_retry_config()),
            namespace=settings.user_namespace,
        )
        object_store = S3ObjectStore(
            region=settings.aws_region,
            write_limiter=ConcurrencyLimiter(
                settings.store_max_concurrent_writes, name="store-writes"
            ),
        )
        return cls(client, object_store, settings=settings)

    def processor_for(self, asset_type: AssetType) -> AssetProcessor:
        """Return the (cached) processor for a type."""
        if asset_type not in self._processors:
            self._processors[asset_type] = StrategyRegistry.create_processor(
                asset_type,
                self.client,
                self.object_store,
                self.collection_store,
                self.bucket,
                limiter=ConcurrencyLimiter(
                    self.settings.concurrency_per_processor,
                    name=f"{asset_type.service_path}-subfetch",
                ),
            )
        return self._processors[asset_type]

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_assets(self, asset_type: AssetType) -> list[AssetSummary]:
        """List and validate every asset of a type, excluding deleted ones.

        Raises:
            ListingError: If a page has too many invalid items
            MaxRetriesExceededError: If a page fetch exhausts its retries
        """
        strategy = StrategyRegistry.get(asset_type)

        def _map_page(items: list[dict[str, Any]]) -> list[AssetSummary]:
            return validate_and_map(
                items,
                strategy.map_list_item,
                strategy.get_list_id,
                lambda summary: summary.asset_id,
                asset_type.value,
            )

        result = await self.paginator.fetch_all(
            lambda cursor, size: self.client.list_page(asset_type, cursor, size),
            operation_name=f"list {asset_type.service_path}",
            map_page=_map_page,
            source=asset_type.value,
        )

        summaries = [s for s in result.items if not s.is_deleted]
        deleted = len(result.items) - len(summaries)
        if deleted:
            logger.info("Excluded %d deleted %s", deleted, asset_type.service_path)

        logger.info(
            "Listed %d %s in %d pages",
            len(summaries),
            asset_type.service_path,
            result.total_pages,
        )
        self._listed[asset_type] = summaries
        return summaries

    async def select_for_processing(
        self,
        asset_type: AssetType,
        summaries: list[AssetSummary],
        context: ProcessingContext,
    ) -> list[AssetSummary]:
        """Return the assets that need processing in this run."""
        if context.force_refresh or context.effective_options.is_metadata_only:
            return list(summaries)

        processor = self.processor_for(asset_type)
        decisions = await self.read_limiter.map(summaries, processor.should_update)
        return [s for s, update in zip(summaries, decisions, strict=True) if update]

    # =========================================================================
    # Processing
    # =========================================================================

    async def process(
        self,
        asset_type: AssetType,
        refresh_options: RefreshOptions | None = None,
        force_refresh: bool = False,
    ) -> AssetTypeSummary:
        """Export every asset of one type.

        Collection-stored records are only added to the run's batches;
        call flush_collection_batches() once all types are done.

        Raises:
            ListingError: If the listing is rejected by the validation gate
            ExportError: If the listing cannot be fetched
        """
        start = time.monotonic()
        context = ProcessingContext(
            force_refresh=force_refresh, refresh_options=refresh_options
        )
        summary = AssetTypeSummary(asset_type=asset_type)

        listed = await self.list_assets(asset_type)
        summary.total_listed = len(listed)

        to_process = await self.select_for_processing(asset_type, listed, context)
        summary.cached = len(listed) - len(to_process)
        if summary.cached:
            logger.info(
                "%d %s unchanged since last export",
                summary.cached,
                asset_type.service_path,
            )

        processor = self.processor_for(asset_type)
        limiter = ConcurrencyLimiter(
            self.settings.concurrency_per_type, name=asset_type.service_path
        )
        batch_size = self.settings.asset_batch_size
        completed = 0

        async def _process_one(asset: AssetSummary) -> ProcessingResult:
            nonlocal completed
            result = await processor.process(asset, context)
            completed += 1
            if completed % batch_size == 0 or completed == len(to_process):
                logger.info(
                    "%s: processed %d/%d",
                    asset_type.service_path,
                    completed,
                    len(to_process),
                )
            return result

        for result in await limiter.map(to_process, _process_one):
            summary.record(result)

        if self.settings.archive_removed_assets:
            summary.archived = await self.archive_removed(asset_type, listed)

        summary.duration_seconds = time.monotonic() - start
        logger.info(
            "Finished %s: %d successful, %d failed, %d cached, %d archived (%.2fs)",
            asset_type.service_path,
            summary.successful,
            summary.failed,
            summary.cached,
            len(summary.archived),
            summary.duration_seconds,
        )
        return summary

    async def archive_removed(
        self, asset_type: AssetType, listed: list[AssetSummary]
    ) -> list[str]:
        """Archive stored records of assets missing from a successful listing.

        Each orphaned record is copied to archive_key(key) and then deleted.
        Collection-stored types are skipped. A record that fails to move, or
        a store listing that fails, leaves records in place for the next run.

        Returns:
            Keys that were archived
        """
        strategy = StrategyRegistry.get(asset_type)
        if strategy.storage_type != StorageType.INDIVIDUAL:
            return []

        live = {strategy.storage_key(s.asset_id) for s in listed}
        prefix = individual_prefix(asset_type.service_path)
        try:
            stored = await self.object_store.list_keys(self.bucket, prefix)
        except Exception as e:
            logger.warning("Could not list stored %s: %s", prefix, e)
            return []
        removed = [k for k in stored if k.endswith(".json") and k not in live]
        if not removed:
            return []

        async def _archive(key: str) -> str:
            record = await self.object_store.get(self.bucket, key)
            await self.object_store.put(self.bucket, archive_key(key), record)
            await self.object_store.delete(self.bucket, key)
            return key

        archived: list[str] = []
        for key, outcome in zip(
            removed,
            await self.read_limiter.map_settled(removed, _archive),
            strict=True,
        ):
            if isinstance(outcome, BaseException):
                logger.warning("Failed to archive %s: %s", key, outcome)
            else:
                archived.append(outcome)

        logger.info(
            "Archived %d removed %s", len(archived), asset_type.service_path
        )
        return archived

    async def export(
        self,
        asset_types: list[AssetType] | None = None,
        refresh_options: RefreshOptions | None = None,
        force_refresh: bool = False,
        include_ingestions: bool = False,
    ) -> ExportSummary:
        """Export several asset types and flush collection batches once.

        A type whose listing fails is recorded with its listing error and the
        run continues with the next type.

        Raises:
            Exception: If flushing collection batches fails
        """
        start = time.monotonic()
        result = ExportSummary()

        for asset_type in StrategyRegistry.ordered(asset_types):
            try:
                type_summary = await self.process(asset_type, refresh_options, force_refresh)
            except Exception as e:
                logger.error("Export of %s failed: %s", asset_type.service_path, e)
                type_summary = AssetTypeSummary(asset_type=asset_type, listing_error=str(e))
            result.types.append(type_summary)

        await self.flush_collection_batches()

        if include_ingestions:
            try:
                result.ingestions = await self.process_ingestions()
            except Exception as e:
                logger.error("Ingestion processing failed: %s", e)

        result.duration_seconds = time.monotonic() - start
        logger.info(
            "Export complete: %d successful, %d failed, %d cached, %d types failed (%.2fs)",
            result.total_successful,
            result.total_failed,
            result.total_cached,
            len(result.failed_types),
            result.duration_seconds,
        )
        return result

    async def process_ingestions(
        self, datasets: list[AssetSummary] | None = None
    ) -> IngestionProcessingResult:
        """Collect SPICE ingestions and store them.

        Args:
            datasets: Dataset summaries; defaults to this run's dataset
                listing, listing datasets if none was done yet
        """
        if datasets is None:
            datasets = self._listed.get(AssetType.DATASET)
            if datasets is None:
                datasets = await self.list_assets(AssetType.DATASET)

        processor = IngestionProcessor(
            self.client,
            limiter=ConcurrencyLimiter(
                self.settings.concurrency_auxiliary, name="ingestions"
            ),
        )
        result = await processor.process_ingestions(datasets)
        await self.object_store.put(
            self.bucket, self.settings.ingestions_key, result.to_dict()
        )
        return result

    async def flush_collection_batches(self) -> int:
        """Write every dirty collection batch.

        Raises:
            Exception: If any write fails (the batch stays registered)
        """
        return await self.collection_store.flush_all(self.object_store)

    def clear_batches(self) -> None:
        """Discard pending collection batches without writing them."""
        self.collection_store.clear()
