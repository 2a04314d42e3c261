"""Export pipeline configuration using pydantic-settings.

Loads configuration from environment variables (prefix ``EXPORT_``) with
defaults tuned for a typical QuickSight account. Apart from
``archive_removed_assets``, these knobs only affect throughput and
back-pressure.

The module loads a ``.env`` file from the project root if present.

Example:
    export EXPORT_AWS_ACCOUNT_ID=123456789012
    export EXPORT_CONCURRENCY_PER_TYPE=5
    export EXPORT_BUCKET_NAME=my-metadata-bucket
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quicksight_export.export.base.pagination import MAX_PAGE_SIZE
from quicksight_export.export.base.retry_handler import RetryConfig

logger = logging.getLogger(__name__)

_env_path = Path(__file__).resolve().parents[3] / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
    logger.debug("Loaded environment from %s", _env_path)


class ExportSettings(BaseSettings):
    """Configuration for the export pipeline.

    All settings can be overridden via environment variables using the
    ``EXPORT_`` prefix. The AWS region also honours ``AWS_DEFAULT_REGION``.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPORT_",
        case_sensitive=False,
        populate_by_name=True,
    )

    # AWS settings
    aws_account_id: str = ""
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices(
            "EXPORT_AWS_REGION", "AWS_DEFAULT_REGION", "AWS_REGION"
        ),
    )
    bucket_name: str | None = None
    user_namespace: str = "default"

    # Concurrency limits
    concurrency_operations: int = Field(default=20, ge=1)
    concurrency_per_type: int = Field(default=10, ge=1)
    concurrency_per_processor: int = Field(default=20, ge=1)
    concurrency_auxiliary: int = Field(default=20, ge=1)
    concurrency_page_fetch: int = Field(default=5, ge=1)

    # Pagination
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    progress_log_interval: int = Field(default=10, ge=1)

    # Retry (page fetches)
    retry_max_retries: int = Field(default=5, ge=0)
    retry_base_delay_ms: int = Field(default=500, gt=0)
    retry_max_delay_ms: int = Field(default=10_000, gt=0)
    retry_jitter_factor: float = Field(default=0.3, ge=0.0, le=1.0)

    # Retry (standard tier: describe, definition and sub-resource calls)
    api_retry_max_retries: int = Field(default=3, ge=0)
    api_retry_base_delay_ms: int = Field(default=100, gt=0)
    api_retry_max_delay_ms: int = Field(default=5_000, gt=0)

    # Retry (throttled tier: permissions and tags calls)
    throttled_retry_max_retries: int = Field(default=5, ge=0)
    throttled_retry_base_delay_ms: int = Field(default=1_000, gt=0)
    throttled_retry_max_delay_ms: int = Field(default=30_000, gt=0)

    # Batching and object store
    asset_batch_size: int = Field(default=25, ge=1)
    store_max_concurrent_reads: int = Field(default=20, ge=1)
    store_max_concurrent_writes: int = Field(default=3, ge=1)
    store_max_concurrent_flush_writes: int = Field(default=3, ge=1)

    # Request rate limits (requests per second)
    api_requests_per_second: float = Field(default=10.0, gt=0)
    api_burst_size: float = Field(default=10.0, gt=0)
    permissions_requests_per_second: float = Field(default=2.0, gt=0)
    permissions_burst_size: float = Field(default=2.0, gt=0)

    archive_removed_assets: bool = True
    ingestions_key: str = "ingestions/ingestions.json"

    @property
    def bucket(self) -> str:
        """Target bucket, defaulting to the account-scoped metadata bucket."""
        return self.bucket_name or f"quicksight-metadata-bucket-{self.aws_account_id}"

    def _retry_config(
        self, max_retries: int, base_delay_ms: int, max_delay_ms: int
    ) -> RetryConfig:
        base = base_delay_ms / 1000
        return RetryConfig(
            max_retries=max_retries,
            base_delay=base,
            max_delay=max(max_delay_ms / 1000, base),
            jitter_factor=self.retry_jitter_factor,
        )

    def pagination_retry_config(self) -> RetryConfig:
        """Retry configuration used for page fetches."""
        return self._retry_config(
            self.retry_max_retries, self.retry_base_delay_ms, self.retry_max_delay_ms
        )

    def api_retry_config(self) -> RetryConfig:
        """Standard-tier retry configuration for API calls."""
        return self._retry_config(
            self.api_retry_max_retries,
            self.api_retry_base_delay_ms,
            self.api_retry_max_delay_ms,
        )

    def throttled_retry_config(self) -> RetryConfig:
        """Throttled-tier retry configuration for permissions and tags calls."""
        return self._retry_config(
            self.throttled_retry_max_retries,
            self.throttled_retry_base_delay_ms,
            self.throttled_retry_max_delay_ms,
        )


@lru_cache
def get_settings() -> ExportSettings:
    """Get cached settings instance.

    Returns:
        ExportSettings loaded from environment.
    """
    return ExportSettings()
