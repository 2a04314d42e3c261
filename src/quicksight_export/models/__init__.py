"""Data models for QuickSight export."""

from quicksight_export.models.assets import (
    AssetSummary,
    AssetType,
    Capabilities,
    ProcessingContext,
    RefreshOptions,
    StorageType,
)
from quicksight_export.models.ingestion import (
    FAILED_STATUSES,
    RUNNING_STATUSES,
    Ingestion,
    IngestionMetadata,
    IngestionProcessingResult,
    QueueInfo,
)
from quicksight_export.models.summary import (
    AssetError,
    AssetTypeSummary,
    ExportSummary,
    ProcessingDetails,
    ProcessingResult,
    ProcessingStatus,
)

__all__ = [
    # Asset Models
    "AssetSummary",
    "AssetType",
    "Capabilities",
    "ProcessingContext",
    "RefreshOptions",
    "StorageType",
    # Ingestion Models
    "FAILED_STATUSES",
    "Ingestion",
    "IngestionMetadata",
    "IngestionProcessingResult",
    "QueueInfo",
    "RUNNING_STATUSES",
    # Summary Models
    "AssetError",
    "AssetTypeSummary",
    "ExportSummary",
    "ProcessingDetails",
    "ProcessingResult",
    "ProcessingStatus",
]
