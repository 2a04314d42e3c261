"""Result and summary models produced by an export run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quicksight_export.models.assets import AssetType
    from quicksight_export.models.ingestion import IngestionProcessingResult


class ProcessingStatus(Enum):
    """Outcome of processing one asset."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ProcessingDetails:
    """Whether each detail category was fetched for an asset."""

    definition: bool = False
    permissions: bool = False
    tags: bool = False


@dataclass(frozen=True, slots=True)
class ProcessingResult:
    """Result of AssetProcessor.process for one asset.

    Attributes:
        asset_id: Asset identifier
        asset_name: Asset display name
        status: SUCCESS or ERROR
        error: Error message when status is ERROR
        details: Which categories were in scope for this run
        processing_time_ms: Wall time spent on the asset
        category_warnings: Categories that degraded to their default value
    """

    asset_id: str
    asset_name: str
    status: ProcessingStatus
    error: str | None = None
    details: ProcessingDetails = field(default_factory=ProcessingDetails)
    processing_time_ms: float = 0.0
    category_warnings: tuple[str, ...] = ()

    @property
    def is_successful(self) -> bool:
        return self.status == ProcessingStatus.SUCCESS


@dataclass(frozen=True, slots=True)
class AssetError:
    """One failed asset, as reported in summaries."""

    asset_id: str
    asset_name: str
    error: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class AssetTypeSummary:
    """Aggregate outcome of processing one asset type.

    Attributes:
        asset_type: The processed type
        total_listed: Assets returned by the (validated) listing
        total_processed: Assets handed to the processor
        successful: Processed assets with SUCCESS status
        cached: Listed assets skipped because they were unchanged
        failed: Processed assets with ERROR status
        errors: Per-asset errors
        results: Per-asset processing results
        archived: Stored keys of removed assets moved to the archive
        listing_error: Set when the listing itself failed and the type aborted
        duration_seconds: Wall time for the type
    """

    asset_type: AssetType
    total_listed: int = 0
    total_processed: int = 0
    successful: int = 0
    cached: int = 0
    failed: int = 0
    errors: list[AssetError] = field(default_factory=list)
    results: list[ProcessingResult] = field(default_factory=list)
    archived: list[str] = field(default_factory=list)
    listing_error: str | None = None
    duration_seconds: float = 0.0

    @property
    def is_failed(self) -> bool:
        """True when the type aborted before processing any asset."""
        return self.listing_error is not None

    def record(self, result: ProcessingResult) -> None:
        """Add one processing result to the counters."""
        self.results.append(result)
        self.total_processed += 1
        if result.is_successful:
            self.successful += 1
        else:
            self.failed += 1
            self.errors.append(
                AssetError(
                    asset_id=result.asset_id,
                    asset_name=result.asset_name,
                    error=result.error or "Unknown error",
                )
            )


@dataclass
class ExportSummary:
    """Outcome of a full export run across asset types."""

    types: list[AssetTypeSummary] = field(default_factory=list)
    ingestions: IngestionProcessingResult | None = None
    duration_seconds: float = 0.0

    @property
    def total_successful(self) -> int:
        return sum(s.successful for s in self.types)

    @property
    def total_failed(self) -> int:
        return sum(s.failed for s in self.types)

    @property
    def total_cached(self) -> int:
        return sum(s.cached for s in self.types)

    @property
    def failed_types(self) -> list[AssetType]:
        return [s.asset_type for s in self.types if s.is_failed]

    def get(self, asset_type: AssetType) -> AssetTypeSummary | None:
        for summary in self.types:
            if summary.asset_type == asset_type:
                return summary
        return None
