"""Ingestion history for SPICE datasets.

Fans out one list-ingestions call per SPICE dataset through a single shared
limiter, tolerates per-dataset failures, and returns every ingestion newest
first together with running/failed counts.

Example usage:
    processor = IngestionProcessor(client, limiter=ConcurrencyLimiter(20))
    result = await processor.process_ingestions(dataset_summaries)
    print(result.metadata.running_ingestions, len(result.errors))
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.models.ingestion import (
    Ingestion,
    IngestionMetadata,
    IngestionProcessingResult,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from quicksight_export.models.assets import AssetSummary

logger = logging.getLogger(__name__)

SPICE_IMPORT_MODE = "SPICE"


class IngestionProcessor:
    """Collects ingestions across SPICE datasets."""

    def __init__(self, client: Any, *, limiter: ConcurrencyLimiter | None = None) -> None:
        """Initialize the processor.

        Args:
            client: Remote API client with list_ingestions/describe_ingestion
            limiter: Limiter shared by every per-dataset fetch
        """
        self.client = client
        self.limiter = limiter or ConcurrencyLimiter(20, name="ingestions")

    async def get_ingestion_details(
        self, dataset_id: str, ingestion_id: str
    ) -> Ingestion | None:
        """Describe one ingestion, returning None if it cannot be read."""
        try:
            raw = await self.client.describe_ingestion(dataset_id, ingestion_id)
        except Exception as e:
            logger.error(
                "Failed to describe ingestion %s for dataset %s: %s",
                ingestion_id,
                dataset_id,
                e,
            )
            return None
        if not raw:
            return None
        return Ingestion.from_api(raw, dataset_id=dataset_id)

    async def process_ingestions(
        self, datasets: Iterable[AssetSummary]
    ) -> IngestionProcessingResult:
        """Fetch ingestions for every SPICE dataset.

        Args:
            datasets: Dataset summaries; non-SPICE entries are ignored

        Returns:
            IngestionProcessingResult sorted newest first
        """
        start = time.monotonic()
        spice = [
            d for d in datasets if (d.import_mode or "").upper() == SPICE_IMPORT_MODE
        ]
        logger.info("Found %d SPICE datasets to process", len(spice))

        errors: list[str] = []

        async def _fetch(dataset: AssetSummary) -> list[Ingestion]:
            try:
                raw_items = await self.client.list_ingestions(dataset.asset_id)
                return [
                    Ingestion.from_api(
                        raw, dataset_id=dataset.asset_id, dataset_name=dataset.asset_name
                    )
                    for raw in raw_items
                ]
            except Exception as e:
                message = f"Failed to fetch ingestions for dataset {dataset.asset_id}: {e}"
                logger.error(message)
                errors.append(message)
                return []

        per_dataset = await self.limiter.map(spice, _fetch)
        ingestions = [i for batch in per_dataset for i in batch]
        ingestions.sort(key=lambda i: i.created_time or "", reverse=True)

        metadata = IngestionMetadata(
            total_ingestions=len(ingestions),
            running_ingestions=sum(1 for i in ingestions if i.is_running),
            failed_ingestions=sum(1 for i in ingestions if i.is_failed),
            last_updated=datetime.now(UTC).isoformat(),
        )
        processing_time_ms = (time.monotonic() - start) * 1000

        logger.info(
            "Ingestion processing completed in %.0fms "
            "(total=%d, running=%d, failed=%d, errors=%d)",
            processing_time_ms,
            metadata.total_ingestions,
            metadata.running_ingestions,
            metadata.failed_ingestions,
            len(errors),
        )
        return IngestionProcessingResult(
            ingestions=ingestions,
            metadata=metadata,
            processing_time_ms=processing_time_ms,
            errors=errors,
        )
