"""Export CLI command.

Runs an export for the requested asset types and prints a summary.

Usage:
    python -m quicksight_export.cli export
    python -m quicksight_export.cli export --types dashboard,user --force
    python -m quicksight_export.cli export --permissions-only
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from quicksight_export.config.settings import get_settings
from quicksight_export.models.assets import AssetType, RefreshOptions

if TYPE_CHECKING:
    from quicksight_export.export.coordinator import ExportCoordinator
    from quicksight_export.models.summary import ExportSummary

logger = logging.getLogger(__name__)


def parse_asset_types(value: str | None) -> list[AssetType] | None:
    """Parse a comma-separated type list ("dashboard,users"); None means all.

    Raises:
        ValueError: If a name is not a known asset type
    """
    if not value:
        return None
    return [AssetType.parse(part) for part in value.split(",") if part.strip()]


def build_refresh_options(
    permissions_only: bool = False,
    tags_only: bool = False,
) -> RefreshOptions | None:
    if permissions_only and tags_only:
        return RefreshOptions(definitions=False, permissions=True, tags=True)
    if permissions_only:
        return RefreshOptions.permissions_only()
    if tags_only:
        return RefreshOptions.tags_only()
    return None


def summary_to_dict(summary: ExportSummary) -> dict[str, Any]:
    return {
        "types": [
            {
                "assetType": s.asset_type.value,
                "listed": s.total_listed,
                "processed": s.total_processed,
                "successful": s.successful,
                "cached": s.cached,
                "failed": s.failed,
                "archived": s.archived,
                "listingError": s.listing_error,
                "errors": [
                    {"assetId": e.asset_id, "assetName": e.asset_name, "error": e.error}
                    for e in s.errors
                ],
            }
            for s in summary.types
        ],
        "totals": {
            "successful": summary.total_successful,
            "failed": summary.total_failed,
            "cached": summary.total_cached,
        },
        "ingestions": (
            summary.ingestions.metadata.to_dict() if summary.ingestions else None
        ),
        "durationSeconds": round(summary.duration_seconds, 2),
    }


def _print_summary(summary: ExportSummary) -> None:
    print("\nExport Summary:")
    for s in summary.types:
        if s.is_failed:
            print(f"  {s.asset_type.service_path}: FAILED ({s.listing_error})")
            continue
        print(
            f"  {s.asset_type.service_path}: {s.successful} ok, {s.failed} failed, "
            f"{s.cached} cached (of {s.total_listed})"
        )
        if s.archived:
            print(f"    archived {len(s.archived)} removed")
        for error in s.errors[:5]:
            print(f"    - {error.asset_id}: {error.error}")
    if summary.ingestions:
        meta = summary.ingestions.metadata
        print(
            f"  ingestions: {meta.total_ingestions} total, "
            f"{meta.running_ingestions} running, {meta.failed_ingestions} failed"
        )
    print(
        f"  Total: {summary.total_successful} ok, {summary.total_failed} failed "
        f"in {summary.duration_seconds:.1f}s"
    )


async def _run_export_async(
    coordinator: ExportCoordinator,
    asset_types: list[AssetType] | None,
    refresh_options: RefreshOptions | None,
    force_refresh: bool,
    include_ingestions: bool,
    as_json: bool,
) -> int:
    summary = await coordinator.export(
        asset_types,
        refresh_options=refresh_options,
        force_refresh=force_refresh,
        include_ingestions=include_ingestions,
    )
    if as_json:
        print(json.dumps(summary_to_dict(summary), indent=2))
    else:
        _print_summary(summary)

    if summary.failed_types:
        return 2
    return 1 if summary.total_failed else 0


def run_export(
    types: str | None = None,
    permissions_only: bool = False,
    tags_only: bool = False,
    force: bool = False,
    include_ingestions: bool = False,
    bucket: str | None = None,
    as_json: bool = False,
    coordinator: ExportCoordinator | None = None,
) -> int:
    """Run export command.

    Args:
        types: Comma-separated asset types (all types if None)
        permissions_only: Refresh permissions without definitions
        tags_only: Refresh tags without definitions
        force: Process every asset regardless of change detection
        include_ingestions: Also export SPICE ingestion history
        bucket: Override the target bucket
        as_json: Print the summary as JSON
        coordinator: Pre-built coordinator (mainly for tests)

    Returns:
        Exit code (0 success, 1 some assets failed, 2 a type failed)
    """
    try:
        asset_types = parse_asset_types(types)
    except ValueError as e:
        print(str(e))
        return 2

    if coordinator is None:
        from quicksight_export.export.coordinator import ExportCoordinator

        settings = get_settings()
        if bucket:
            settings = settings.model_copy(update={"bucket_name": bucket})
        coordinator = ExportCoordinator.from_settings(settings)

    return asyncio.run(
        _run_export_async(
            coordinator,
            asset_types,
            build_refresh_options(permissions_only, tags_only),
            force,
            include_ingestions,
            as_json,
        )
    )
