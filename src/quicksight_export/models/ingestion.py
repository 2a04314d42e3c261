"""Data models for SPICE dataset ingestions.

Example usage:
    ingestion = Ingestion.from_api(raw, dataset_id="ds-1", dataset_name="Orders")
    if ingestion.is_running:
        ...
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

RUNNING_STATUSES: frozenset[str] = frozenset({"RUNNING", "QUEUED", "INITIALIZED"})
FAILED_STATUSES: frozenset[str] = frozenset({"FAILED"})


@dataclass(frozen=True, slots=True)
class QueueInfo:
    waiting_on_ingestion: str | None = None
    queued_ingestion: str | None = None


@dataclass(frozen=True, slots=True)
class Ingestion:
    """One ingestion of a SPICE dataset.

    Attributes:
        id: Ingestion ID
        dataset_id: Owning dataset ID
        dataset_name: Owning dataset name, if known
        ingestion_arn: Ingestion ARN
        status: IngestionStatus (e.g. COMPLETED, RUNNING, FAILED)
        created_time: ISO timestamp string
        ingestion_time_in_seconds: Duration reported by the API
        ingestion_size_in_bytes: Bytes ingested
        rows_ingested: Rows ingested
        rows_dropped: Rows dropped
        error_type: ErrorInfo.Type for failed ingestions
        error_message: ErrorInfo.Message for failed ingestions
        request_type: INITIAL_INGESTION, EDIT, INCREMENTAL_REFRESH or FULL_REFRESH
        queue_info: Queue position for queued ingestions
    """

    id: str
    dataset_id: str
    dataset_name: str | None = None
    ingestion_arn: str | None = None
    status: str | None = None
    created_time: str | None = None
    ingestion_time_in_seconds: int | None = None
    ingestion_size_in_bytes: int | None = None
    rows_ingested: int | None = None
    rows_dropped: int | None = None
    error_type: str | None = None
    error_message: str | None = None
    request_type: str | None = None
    queue_info: QueueInfo | None = None

    @classmethod
    def from_api(
        cls,
        raw: dict[str, Any],
        *,
        dataset_id: str,
        dataset_name: str | None = None,
    ) -> Ingestion:
        row_info = raw.get("RowInfo") or {}
        error_info = raw.get("ErrorInfo") or {}
        queue = raw.get("QueueInfo")
        created = raw.get("CreatedTime")
        return cls(
            id=raw["IngestionId"],
            dataset_id=dataset_id,
            dataset_name=dataset_name,
            ingestion_arn=raw.get("Arn"),
            status=raw.get("IngestionStatus"),
            created_time=created.isoformat() if hasattr(created, "isoformat") else created,
            ingestion_time_in_seconds=raw.get("IngestionTimeInSeconds"),
            ingestion_size_in_bytes=raw.get("IngestionSizeInBytes"),
            rows_ingested=row_info.get("RowsIngested"),
            rows_dropped=row_info.get("RowsDropped"),
            error_type=error_info.get("Type"),
            error_message=error_info.get("Message"),
            request_type=raw.get("RequestType"),
            queue_info=(
                QueueInfo(
                    waiting_on_ingestion=queue.get("WaitingOnIngestion"),
                    queued_ingestion=queue.get("QueuedIngestion"),
                )
                if queue
                else None
            ),
        )

    @property
    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    @property
    def is_failed(self) -> bool:
        return self.status in FAILED_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class IngestionMetadata:
    """Counts derived from a set of ingestions."""

    total_ingestions: int
    running_ingestions: int
    failed_ingestions: int
    last_updated: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IngestionProcessingResult:
    """Output of IngestionProcessor.process_ingestions.

    Attributes:
        ingestions: All ingestions, newest first
        metadata: Derived counts
        processing_time_ms: Wall time for the whole fan-out
        errors: One message per dataset whose ingestions could not be listed
    """

    ingestions: list[Ingestion]
    metadata: IngestionMetadata
    processing_time_ms: float = 0.0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ingestions": [i.to_dict() for i in self.ingestions],
            "metadata": self.metadata.to_dict(),
        }
