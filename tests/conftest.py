"""Shared pytest fixtures for QuickSight export tests.

Fixtures are organized into categories:
- Sample listing data (dashboards, datasets, users, folders)
- In-memory object store
- Mock QuickSight client
- Pipeline component fixtures (collection store, settings)

Usage:
    # In any test file, fixtures are automatically available:
    async def test_example(memory_store, mock_client):
        await memory_store.put("bucket", "key", {"a": 1})
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from quicksight_export.clients.object_store import serialize
from quicksight_export.clients.quicksight import QuickSightClient
from quicksight_export.config.settings import ExportSettings
from quicksight_export.export.base.protocol import ObjectNotFoundError, StorageError
from quicksight_export.export.collection_store import CollectionStore
from quicksight_export.export.processors.registry import StrategyRegistry
from quicksight_export.models.assets import AssetSummary, AssetType

# =============================================================================
# Sample Listing Data
# =============================================================================


@pytest.fixture
def dashboard_item() -> dict[str, Any]:
    """Raw dashboard listing item as returned by ListDashboards."""
    return {
        "Arn": "arn:aws:quicksight:us-east-1:123456789012:dashboard/dash-1",
        "DashboardId": "dash-1",
        "Name": "Sales Overview",
        "CreatedTime": "2024-01-10T09:00:00+00:00",
        "LastUpdatedTime": "2024-05-01T10:00:00+00:00",
        "PublishedVersionNumber": 3,
    }


@pytest.fixture
def dashboard_summary(dashboard_item: dict[str, Any]) -> AssetSummary:
    return AssetSummary.from_list_item(
        AssetType.DASHBOARD, dashboard_item, id_field="DashboardId"
    )


@pytest.fixture
def dataset_item() -> dict[str, Any]:
    """Raw SPICE dataset listing item."""
    return {
        "Arn": "arn:aws:quicksight:us-east-1:123456789012:dataset/ds-1",
        "DataSetId": "ds-1",
        "Name": "Orders",
        "CreatedTime": "2024-01-10T09:00:00+00:00",
        "LastUpdatedTime": "2024-04-01T08:00:00+00:00",
        "ImportMode": "SPICE",
    }


@pytest.fixture
def user_summaries() -> list[AssetSummary]:
    return [
        AssetSummary.from_list_item(
            AssetType.USER,
            {"UserName": f"user-{i}", "Arn": f"arn:aws:quicksight:us-east-1:1:user/default/user-{i}"},
            id_field="UserName",
            name_field="UserName",
        )
        for i in (1, 2, 3)
    ]


@pytest.fixture
def summary_factory() -> Callable[..., AssetSummary]:
    """Factory building a summary for any asset type from a minimal item.

    Usage:
        def test_example(summary_factory):
            summary = summary_factory(AssetType.FOLDER, "f-1")
    """

    def _make(asset_type: AssetType, asset_id: str, **raw: Any) -> AssetSummary:
        strategy = StrategyRegistry.get(asset_type)
        item: dict[str, Any] = {strategy.id_field: asset_id}
        if strategy.name_field != strategy.id_field:
            item[strategy.name_field] = f"{asset_id} name"
        item.update(raw)
        return strategy.map_list_item(item)

    return _make


# =============================================================================
# In-Memory Object Store
# =============================================================================


class MemoryObjectStore:
    """ObjectStore keeping serialized objects in a dict.

    Attributes:
        objects: Stored bytes keyed by (bucket, key)
        put_calls: Every (bucket, key) written, in order
        deleted: Every (bucket, key) deleted, in order
        fail_puts: When True, put raises StorageError
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.put_calls: list[tuple[str, str]] = []
        self.get_calls: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.fail_puts = False

    async def get(self, bucket: str, key: str) -> Any:
        self.get_calls.append((bucket, key))
        if (bucket, key) not in self.objects:
            raise ObjectNotFoundError(f"missing {key}", bucket=bucket, key=key)
        return json.loads(self.objects[(bucket, key)])

    async def put(self, bucket: str, key: str, obj: Any) -> None:
        if self.fail_puts:
            raise StorageError("store rejected write", bucket=bucket, key=key)
        self.put_calls.append((bucket, key))
        self.objects[(bucket, key)] = serialize(obj)

    async def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket and k.startswith(prefix))

    async def delete(self, bucket: str, key: str) -> None:
        self.deleted.append((bucket, key))
        self.objects.pop((bucket, key), None)

    def seed(self, bucket: str, key: str, obj: Any) -> None:
        self.objects[(bucket, key)] = serialize(obj)

    def load(self, bucket: str, key: str) -> Any:
        return json.loads(self.objects[(bucket, key)])


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    """Empty in-memory object store."""
    return MemoryObjectStore()


# =============================================================================
# Mock QuickSight Client
# =============================================================================


@pytest.fixture
def mock_client() -> MagicMock:
    """QuickSightClient mock whose async methods return realistic defaults."""
    client = MagicMock(spec=QuickSightClient)
    client.describe_dashboard.return_value = {"DashboardId": "dash-1", "Name": "Sales"}
    client.describe_dashboard_definition.return_value = {
        "DashboardId": "dash-1",
        "Definition": {"Sheets": []},
    }
    client.describe_dashboard_permissions.return_value = [
        {
            "Principal": "arn:aws:quicksight:us-east-1:1:user/default/admin",
            "Actions": ["quicksight:DescribeDashboard"],
        }
    ]
    client.describe_analysis.return_value = {"AnalysisId": "an-1"}
    client.describe_analysis_definition.return_value = {"Definition": {}}
    client.describe_analysis_permissions.return_value = []
    client.describe_data_set.return_value = {"DataSetId": "ds-1", "ImportMode": "SPICE"}
    client.describe_data_set_permissions.return_value = []
    client.describe_data_set_refresh_properties.return_value = {"RefreshConfiguration": {}}
    client.list_refresh_schedules.return_value = [{"ScheduleId": "daily"}]
    client.describe_data_source.return_value = {"DataSourceId": "src-1", "Type": "ATHENA"}
    client.describe_data_source_permissions.return_value = []
    client.describe_folder.return_value = {"FolderId": "f-1", "Name": "Finance"}
    client.describe_folder_permissions.return_value = []
    client.list_folder_members.return_value = []
    client.list_group_memberships.return_value = [{"MemberName": "user-1"}]
    client.list_tags.return_value = [{"Key": "team", "Value": "sales"}]
    client.list_ingestions.return_value = []
    client.describe_ingestion.return_value = {}
    return client


# =============================================================================
# Pipeline Components
# =============================================================================


@pytest.fixture
def collection_store() -> CollectionStore:
    """Fresh collection store for one test."""
    return CollectionStore()


@pytest.fixture
def export_settings() -> ExportSettings:
    """Settings with small limits and no retry delays worth waiting for."""
    return ExportSettings(
        aws_account_id="123456789012",
        bucket_name="bucket-a",
        concurrency_per_type=4,
        concurrency_per_processor=4,
        retry_max_retries=1,
        retry_base_delay_ms=1,
        retry_max_delay_ms=1,
        asset_batch_size=2,
    )
