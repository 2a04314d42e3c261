"""Per-type export strategies.

Each asset type is described by one AssetStrategy record: capabilities,
storage type, listing fields and the hook functions the generic processor
calls. Hooks take ``(client, summary)`` and may raise; the processor turns
failures into category defaults.

| type       | definition | permissions | tags | special                    | storage    |
|------------|------------|-------------|------|----------------------------|------------|
| dashboard  | yes        | yes         | yes  | -                          | individual |
| analysis   | yes        | yes         | yes  | -                          | individual |
| dataset    | -          | yes         | yes  | refresh properties/schedules | individual |
| datasource | -          | yes         | yes  | -                          | individual |
| user       | -          | -           | -    | (none)                     | collection |
| group      | -          | -           | -    | members                    | collection |
| folder     | -          | yes         | -    | members                    | collection |
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from quicksight_export.export.base.protocol import RemoteApiError
from quicksight_export.export.processors.base import (
    UPLOADED_FILE,
    AssetStrategy,
    always_update,
)
from quicksight_export.models.assets import (
    AssetSummary,
    AssetType,
    Capabilities,
    StorageType,
)

logger = logging.getLogger(__name__)

FILE_DESCRIBE_UNSUPPORTED = "not supported through API"
REFRESH_PROPERTIES_NOT_SET = "Dataset refresh properties are not set"

# Checked in order; first match wins
MEMBER_TYPE_PATTERNS: tuple[tuple[str, str], ...] = (
    (":dashboard/", "DASHBOARD"),
    (":analysis/", "ANALYSIS"),
    (":dataset/", "DATASET"),
    (":datasource/", "DATASOURCE"),
    (":user/", "USER"),
    (":group/", "GROUP"),
)


def infer_member_type(identifier: str | None) -> str | None:
    """Infer a folder member's type from its ARN.

    Example:
        infer_member_type("arn:aws:quicksight:us-east-1:1:dashboard/d-1")  # "DASHBOARD"
        infer_member_type("arn:aws:quicksight:us-east-1:1:topic/t-1")      # None
    """
    if not identifier:
        return None
    for pattern, member_type in MEMBER_TYPE_PATTERNS:
        if pattern in identifier:
            return member_type
    return None


# =============================================================================
# Dashboards
# =============================================================================


async def describe_dashboard(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_dashboard(summary.asset_id)


async def describe_dashboard_definition(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_dashboard_definition(summary.asset_id)


async def get_dashboard_permissions(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_dashboard_permissions(summary.asset_id)


# =============================================================================
# Analyses
# =============================================================================


async def describe_analysis(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_analysis(summary.asset_id)


async def describe_analysis_definition(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_analysis_definition(summary.asset_id)


async def get_analysis_permissions(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_analysis_permissions(summary.asset_id)


# =============================================================================
# Datasets
# =============================================================================


async def describe_dataset(client: Any, summary: AssetSummary) -> Any:
    """Describe a dataset; uploaded-file datasets get a placeholder.

    FILE datasets are never described. The API also rejects some other
    uploaded datasets with a "not supported through API" error, which maps to
    the same placeholder.
    """
    if (summary.import_mode or "").upper() == "FILE":
        return UPLOADED_FILE
    try:
        return await client.describe_data_set(summary.asset_id)
    except RemoteApiError as e:
        if FILE_DESCRIBE_UNSUPPORTED in str(e):
            logger.debug("Dataset %s is an uploaded file", summary.asset_id)
            return UPLOADED_FILE
        raise


async def get_dataset_permissions(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_data_set_permissions(summary.asset_id)


async def get_dataset_refresh_metadata(client: Any, summary: AssetSummary) -> dict[str, Any]:
    """Fetch refresh properties and schedules; each failure is tolerated."""
    dataset_id = summary.asset_id
    properties, schedules = await asyncio.gather(
        client.describe_data_set_refresh_properties(dataset_id),
        client.list_refresh_schedules(dataset_id),
        return_exceptions=True,
    )

    special: dict[str, Any] = {}
    if isinstance(properties, BaseException):
        if REFRESH_PROPERTIES_NOT_SET not in str(properties):
            logger.warning(
                "Could not get refresh properties for dataset %s: %s",
                dataset_id,
                properties,
            )
    else:
        special["dataSetRefreshProperties"] = properties

    if isinstance(schedules, BaseException):
        logger.warning(
            "Could not get refresh schedules for dataset %s: %s", dataset_id, schedules
        )
    else:
        special["refreshSchedules"] = schedules or []

    return special


# =============================================================================
# Data sources
# =============================================================================


async def describe_datasource(client: Any, summary: AssetSummary) -> Any:
    try:
        return await client.describe_data_source(summary.asset_id)
    except Exception as e:
        logger.debug(
            "DescribeDataSource failed for %s, treating as uploaded file: %s",
            summary.asset_id,
            e,
        )
        return UPLOADED_FILE


async def get_datasource_permissions(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_data_source_permissions(summary.asset_id)


# =============================================================================
# Tags (shared)
# =============================================================================


async def get_tags(client: Any, summary: AssetSummary) -> Any:
    return await client.list_tags(summary.asset_type, summary.asset_id)


# =============================================================================
# Organizational types
# =============================================================================


async def describe_user(client: Any, summary: AssetSummary) -> Any:
    return {"UserName": summary.asset_id}


async def describe_group(client: Any, summary: AssetSummary) -> Any:
    return {"GroupName": summary.asset_id}


async def describe_folder(client: Any, summary: AssetSummary) -> Any:
    try:
        folder = await client.describe_folder(summary.asset_id)
    except Exception as e:
        logger.warning("Failed to describe folder %s: %s", summary.asset_id, e)
        return {"FolderName": summary.asset_id}
    return folder or {"FolderName": summary.asset_id}


async def get_folder_permissions(client: Any, summary: AssetSummary) -> Any:
    return await client.describe_folder_permissions(summary.asset_id)


async def get_user_special(client: Any, summary: AssetSummary) -> dict[str, Any]:
    return {}


async def get_group_members(client: Any, summary: AssetSummary) -> dict[str, Any]:
    return {"members": await client.list_group_memberships(summary.asset_id)}


async def get_folder_members(client: Any, summary: AssetSummary) -> dict[str, Any]:
    members = await client.list_folder_members(summary.asset_id)
    resolved = []
    for member in members:
        entry = dict(member)
        if not entry.get("MemberType") and entry.get("MemberArn"):
            entry["MemberType"] = infer_member_type(entry["MemberArn"])
        resolved.append(entry)
    return {"members": resolved}


# =============================================================================
# Strategy records
# =============================================================================

CONTENT_CAPABILITIES = Capabilities(
    has_definition=True, has_permissions=True, has_tags=True
)
ORGANIZATIONAL_CAPABILITIES = Capabilities(has_special_operations=True)

DASHBOARD = AssetStrategy(
    asset_type=AssetType.DASHBOARD,
    capabilities=CONTENT_CAPABILITIES,
    storage_type=StorageType.INDIVIDUAL,
    id_field="DashboardId",
    describe=describe_dashboard,
    describe_definition=describe_dashboard_definition,
    get_permissions=get_dashboard_permissions,
    get_tags=get_tags,
)

ANALYSIS = AssetStrategy(
    asset_type=AssetType.ANALYSIS,
    capabilities=CONTENT_CAPABILITIES,
    storage_type=StorageType.INDIVIDUAL,
    id_field="AnalysisId",
    describe=describe_analysis,
    describe_definition=describe_analysis_definition,
    get_permissions=get_analysis_permissions,
    get_tags=get_tags,
)

DATASET = AssetStrategy(
    asset_type=AssetType.DATASET,
    capabilities=Capabilities(
        has_permissions=True, has_tags=True, has_special_operations=True
    ),
    storage_type=StorageType.INDIVIDUAL,
    id_field="DataSetId",
    describe=describe_dataset,
    get_permissions=get_dataset_permissions,
    get_tags=get_tags,
    special_operations=get_dataset_refresh_metadata,
)

DATASOURCE = AssetStrategy(
    asset_type=AssetType.DATASOURCE,
    capabilities=Capabilities(has_permissions=True, has_tags=True),
    storage_type=StorageType.INDIVIDUAL,
    id_field="DataSourceId",
    describe=describe_datasource,
    get_permissions=get_datasource_permissions,
    get_tags=get_tags,
)

USER = AssetStrategy(
    asset_type=AssetType.USER,
    capabilities=ORGANIZATIONAL_CAPABILITIES,
    storage_type=StorageType.COLLECTION,
    id_field="UserName",
    name_field="UserName",
    describe=describe_user,
    special_operations=get_user_special,
    should_update=always_update,
)

GROUP = AssetStrategy(
    asset_type=AssetType.GROUP,
    capabilities=ORGANIZATIONAL_CAPABILITIES,
    storage_type=StorageType.COLLECTION,
    id_field="GroupName",
    name_field="GroupName",
    describe=describe_group,
    special_operations=get_group_members,
    should_update=always_update,
)

FOLDER = AssetStrategy(
    asset_type=AssetType.FOLDER,
    capabilities=Capabilities(has_permissions=True, has_special_operations=True),
    storage_type=StorageType.COLLECTION,
    id_field="FolderId",
    describe=describe_folder,
    get_permissions=get_folder_permissions,
    special_operations=get_folder_members,
    should_update=always_update,
)

ALL_STRATEGIES: tuple[AssetStrategy, ...] = (
    DASHBOARD,
    ANALYSIS,
    DATASET,
    DATASOURCE,
    USER,
    GROUP,
    FOLDER,
)
