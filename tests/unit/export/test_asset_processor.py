"""Tests for the generic AssetProcessor."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from quicksight_export.export.base.protocol import (
    MaxRetriesExceededError,
    RemoteApiError,
    ResourceNotFoundError,
)
from quicksight_export.export.collection_store import CollectionStore
from quicksight_export.export.processors.base import (
    UPLOADED_FILE_ERROR,
    AssetProcessor,
    HookResult,
)
from quicksight_export.export.processors.registry import StrategyRegistry
from quicksight_export.models.assets import (
    AssetSummary,
    AssetType,
    ProcessingContext,
    RefreshOptions,
)
from quicksight_export.models.summary import ProcessingDetails, ProcessingStatus

BUCKET = "bucket-a"
DASHBOARD_KEY = "assets/dashboards/dash-1.json"


def make_processor(
    asset_type: AssetType,
    client: MagicMock,
    store: Any,
    collection_store: CollectionStore,
) -> AssetProcessor:
    return StrategyRegistry.create_processor(
        asset_type, client, store, collection_store, BUCKET
    )


def stored_dashboard(last_updated: str) -> dict[str, Any]:
    return {
        "apiResponses": {
            "list": {"data": {"DashboardId": "dash-1", "LastUpdatedTime": last_updated}},
            "describe": {"data": {"DashboardId": "dash-1", "Name": "Old"}},
            "definition": {"data": {"Definition": {"Sheets": ["kept"]}}},
            "permissions": {"data": [{"Principal": "old"}]},
            "tags": {"data": [{"Key": "old"}]},
        }
    }


CLIENT_FETCH_METHODS = (
    "describe_dashboard",
    "describe_dashboard_definition",
    "describe_dashboard_permissions",
    "describe_analysis",
    "describe_analysis_definition",
    "describe_analysis_permissions",
    "describe_data_set",
    "describe_data_set_permissions",
    "describe_data_set_refresh_properties",
    "list_refresh_schedules",
    "describe_data_source",
    "describe_data_source_permissions",
    "describe_folder",
    "describe_folder_permissions",
    "list_folder_members",
    "list_group_memberships",
    "list_tags",
)

FULL_REFRESH_CALLS = {
    AssetType.DASHBOARD: {
        "describe_dashboard",
        "describe_dashboard_definition",
        "describe_dashboard_permissions",
        "list_tags",
    },
    AssetType.ANALYSIS: {
        "describe_analysis",
        "describe_analysis_definition",
        "describe_analysis_permissions",
        "list_tags",
    },
    AssetType.DATASET: {
        "describe_data_set",
        "describe_data_set_permissions",
        "describe_data_set_refresh_properties",
        "list_refresh_schedules",
        "list_tags",
    },
    AssetType.DATASOURCE: {
        "describe_data_source",
        "describe_data_source_permissions",
        "list_tags",
    },
    AssetType.USER: set(),
    AssetType.GROUP: {"list_group_memberships"},
    AssetType.FOLDER: {
        "describe_folder",
        "describe_folder_permissions",
        "list_folder_members",
    },
}


class TestHookResult:
    """Tests for HookResult."""

    def test_skipped(self) -> None:
        """Test a skipped hook carries the default and is not fetched."""
        result = HookResult.skipped([])

        assert result.value == []
        assert not result.fetched
        assert not result.failed

    def test_failed(self) -> None:
        """Test a warning marks the result failed."""
        assert HookResult(value=[], warning="throttled").failed


@pytest.mark.asyncio
class TestRefreshPolicy:
    """Which hooks run for a given refresh policy."""

    async def test_full_refresh_calls_every_capable_hook(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test no options fetches describe, definition, permissions and tags."""
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        result = await processor.process(dashboard_summary, ProcessingContext())

        assert result.status == ProcessingStatus.SUCCESS
        assert result.details == ProcessingDetails(True, True, True)
        mock_client.describe_dashboard.assert_awaited_once_with("dash-1")
        mock_client.describe_dashboard_definition.assert_awaited_once_with("dash-1")
        mock_client.describe_dashboard_permissions.assert_awaited_once_with("dash-1")
        mock_client.list_tags.assert_awaited_once_with(AssetType.DASHBOARD, "dash-1")

        record = memory_store.load(BUCKET, DASHBOARD_KEY)
        assert set(record["apiResponses"]) == {
            "list",
            "describe",
            "definition",
            "permissions",
            "tags",
        }
        assert record["apiResponses"]["list"]["data"]["DashboardId"] == "dash-1"

    @pytest.mark.parametrize(
        ("asset_type", "expected_calls"),
        list(FULL_REFRESH_CALLS.items()),
        ids=[t.value for t in FULL_REFRESH_CALLS],
    )
    async def test_full_refresh_calls_capable_hooks_per_type(
        self,
        asset_type: AssetType,
        expected_calls: set[str],
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test a full refresh calls exactly the hooks each type supports."""
        processor = make_processor(asset_type, mock_client, memory_store, collection_store)
        summary = summary_factory(asset_type, "a-1")

        result = await processor.process(summary, ProcessingContext())

        assert result.status == ProcessingStatus.SUCCESS
        assert result.category_warnings == ()
        awaited = {
            method
            for method in CLIENT_FETCH_METHODS
            if getattr(mock_client, method).await_count
        }
        assert awaited == expected_calls
        for method in expected_calls - {"list_tags"}:
            getattr(mock_client, method).assert_awaited_once_with("a-1")
        if "list_tags" in expected_calls:
            mock_client.list_tags.assert_awaited_once_with(asset_type, "a-1")

    @pytest.mark.parametrize(
        "asset_type",
        [
            AssetType.DASHBOARD,
            AssetType.ANALYSIS,
            AssetType.DATASET,
            AssetType.DATASOURCE,
            AssetType.USER,
            AssetType.GROUP,
            AssetType.FOLDER,
        ],
    )
    async def test_permissions_only_never_describes(
        self,
        asset_type: AssetType,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test permissions-only runs skip describe for every type."""
        processor = make_processor(asset_type, mock_client, memory_store, collection_store)
        summary = summary_factory(asset_type, "a-1")

        result = await processor.process(
            summary, ProcessingContext(refresh_options=RefreshOptions.permissions_only())
        )

        assert result.is_successful
        assert result.details == ProcessingDetails(
            definition=False, permissions=True, tags=False
        )
        for method in (
            "describe_dashboard",
            "describe_dashboard_definition",
            "describe_analysis",
            "describe_analysis_definition",
            "describe_data_set",
            "describe_data_source",
            "describe_folder",
            "list_tags",
        ):
            getattr(mock_client, method).assert_not_awaited()

    async def test_tags_only(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test tags-only fetches tags and nothing else."""
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        result = await processor.process(
            dashboard_summary,
            ProcessingContext(refresh_options=RefreshOptions.tags_only()),
        )

        assert result.details == ProcessingDetails(False, False, True)
        mock_client.list_tags.assert_awaited_once()
        mock_client.describe_dashboard_permissions.assert_not_awaited()
        mock_client.describe_dashboard.assert_not_awaited()

    async def test_capability_gates_hooks(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test types without tags never fetch them but still persist the field."""
        processor = make_processor(
            AssetType.FOLDER, mock_client, memory_store, collection_store
        )

        await processor.process(summary_factory(AssetType.FOLDER, "f-1"), ProcessingContext())

        mock_client.list_tags.assert_not_awaited()
        mock_client.describe_folder_permissions.assert_awaited_once_with("f-1")
        batch = collection_store.get_batch(BUCKET, "assets/organization/folders.json")
        assert batch is not None
        assert batch.data["f-1"]["apiResponses"]["tags"] == {"data": []}


@pytest.mark.asyncio
class TestMetadataOnlyPreservation:
    """Metadata-only refreshes keep stored definitions."""

    async def test_permissions_only_preserves_stored_responses(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test describe, definition and tags are carried over from the stored record."""
        memory_store.seed(BUCKET, DASHBOARD_KEY, stored_dashboard("2024-01-01"))
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        await processor.process(
            dashboard_summary,
            ProcessingContext(refresh_options=RefreshOptions.permissions_only()),
        )

        responses = memory_store.load(BUCKET, DASHBOARD_KEY)["apiResponses"]
        assert responses["describe"] == {"data": {"DashboardId": "dash-1", "Name": "Old"}}
        assert responses["definition"] == {"data": {"Definition": {"Sheets": ["kept"]}}}
        assert responses["tags"] == {"data": [{"Key": "old"}]}
        assert responses["permissions"]["data"][0]["Principal"].endswith("admin")
        assert responses["list"]["data"]["LastUpdatedTime"] == "2024-05-01T10:00:00+00:00"

    async def test_missing_existing_record_is_ignored(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test a first-time permissions refresh writes defaults."""
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        result = await processor.process(
            dashboard_summary,
            ProcessingContext(refresh_options=RefreshOptions.permissions_only()),
        )

        responses = memory_store.load(BUCKET, DASHBOARD_KEY)["apiResponses"]
        assert result.is_successful
        assert "describe" not in responses
        assert responses["definition"] == {"data": None}
        assert responses["tags"] == {"data": []}

    async def test_collection_types_do_not_read_existing(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test collection-stored types skip the existing-record read."""
        processor = make_processor(
            AssetType.USER, mock_client, memory_store, collection_store
        )

        await processor.process(
            summary_factory(AssetType.USER, "user-1"),
            ProcessingContext(refresh_options=RefreshOptions.permissions_only()),
        )

        assert memory_store.get_calls == []

    async def test_failed_special_keeps_stored_special(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test a failed special hook keeps previously stored special responses."""

        async def broken_special(client: Any, summary: AssetSummary) -> Any:
            raise RuntimeError("schedules unavailable")

        strategy = dataclasses.replace(
            StrategyRegistry.get(AssetType.DATASET), special_operations=broken_special
        )
        processor = AssetProcessor(
            strategy, mock_client, memory_store, collection_store, BUCKET
        )
        memory_store.seed(
            BUCKET,
            "assets/datasets/ds-1.json",
            {"apiResponses": {"refreshSchedules": {"data": [{"ScheduleId": "nightly"}]}}},
        )

        result = await processor.process(
            summary_factory(AssetType.DATASET, "ds-1"),
            ProcessingContext(refresh_options=RefreshOptions.permissions_only()),
        )

        responses = memory_store.load(BUCKET, "assets/datasets/ds-1.json")["apiResponses"]
        assert responses["refreshSchedules"] == {"data": [{"ScheduleId": "nightly"}]}
        assert "special" in result.category_warnings


@pytest.mark.asyncio
class TestHookFailures:
    """Hook failures degrade one category only."""

    async def test_retry_exhaustion_degrades_category(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test exhausted permissions retries yield [] and a warning."""
        mock_client.describe_dashboard_permissions.side_effect = MaxRetriesExceededError(
            "describe_dashboard_permissions failed after 6 attempts", attempts=6
        )
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        with caplog.at_level(logging.WARNING):
            result = await processor.process(dashboard_summary, ProcessingContext())

        responses = memory_store.load(BUCKET, DASHBOARD_KEY)["apiResponses"]
        assert result.is_successful
        assert result.category_warnings == ("permissions",)
        assert responses["permissions"] == {"data": []}
        assert responses["tags"] == {"data": [{"Key": "team", "Value": "sales"}]}
        assert "permissions failed" in caplog.text

    async def test_not_found_logged_quietly(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a permanent describe failure is not logged as a warning."""
        mock_client.describe_dashboard.side_effect = ResourceNotFoundError("gone")
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        with caplog.at_level(logging.WARNING):
            result = await processor.process(dashboard_summary, ProcessingContext())

        responses = memory_store.load(BUCKET, DASHBOARD_KEY)["apiResponses"]
        assert result.is_successful
        assert "describe" in result.category_warnings
        assert "describe" not in responses
        assert caplog.records == []

    async def test_storage_failure_reports_error(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test a failed write yields an ERROR result instead of raising."""
        memory_store.fail_puts = True
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        result = await processor.process(dashboard_summary, ProcessingContext())

        assert result.status == ProcessingStatus.ERROR
        assert result.error is not None
        assert "store rejected write" in result.error
        assert result.asset_name == "Sales Overview"


@pytest.mark.asyncio
class TestTypeSpecificRecords:
    """Record contents for individual asset types."""

    async def test_file_dataset_not_described(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test FILE datasets get a placeholder and still fetch special data."""
        processor = make_processor(
            AssetType.DATASET, mock_client, memory_store, collection_store
        )

        result = await processor.process(
            summary_factory(AssetType.DATASET, "ds-1", ImportMode="FILE"),
            ProcessingContext(),
        )

        responses = memory_store.load(BUCKET, "assets/datasets/ds-1.json")["apiResponses"]
        assert result.is_successful
        mock_client.describe_data_set.assert_not_awaited()
        assert responses["describe"] == {"data": None, "error": UPLOADED_FILE_ERROR}
        assert responses["refreshSchedules"] == {"data": [{"ScheduleId": "daily"}]}
        assert responses["dataSetRefreshProperties"] == {
            "data": {"RefreshConfiguration": {}}
        }
        assert "definition" not in responses

    async def test_unsupported_dataset_gets_placeholder(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test a "not supported through API" describe maps to the placeholder."""
        mock_client.describe_data_set.side_effect = RemoteApiError(
            "describe_data_set failed: InvalidParameterValueException "
            "The data set type is not supported through API yet"
        )
        processor = make_processor(
            AssetType.DATASET, mock_client, memory_store, collection_store
        )

        result = await processor.process(
            summary_factory(AssetType.DATASET, "ds-2", ImportMode="SPICE"),
            ProcessingContext(),
        )

        responses = memory_store.load(BUCKET, "assets/datasets/ds-2.json")["apiResponses"]
        assert result.category_warnings == ()
        assert responses["describe"]["error"] == UPLOADED_FILE_ERROR

    async def test_datasource_describe_failure_placeholder(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test a failing data source describe is stored as an uploaded file."""
        mock_client.describe_data_source.side_effect = RemoteApiError("bad request")
        processor = make_processor(
            AssetType.DATASOURCE, mock_client, memory_store, collection_store
        )

        await processor.process(
            summary_factory(AssetType.DATASOURCE, "src-1"), ProcessingContext()
        )

        responses = memory_store.load(BUCKET, "assets/datasources/src-1.json")[
            "apiResponses"
        ]
        assert responses["describe"] == {"data": None, "error": UPLOADED_FILE_ERROR}

    async def test_reexport_is_byte_identical(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test processing unchanged data twice writes identical bytes."""
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        await processor.process(dashboard_summary, ProcessingContext())
        first = memory_store.objects[(BUCKET, DASHBOARD_KEY)]
        await processor.process(dashboard_summary, ProcessingContext())

        assert memory_store.objects[(BUCKET, DASHBOARD_KEY)] == first
        assert len(memory_store.put_calls) == 2


@pytest.mark.asyncio
class TestCollectionRouting:
    """Collection-stored types go to the CollectionStore."""

    async def test_users_added_to_batch(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        user_summaries: list[AssetSummary],
    ) -> None:
        """Test three users produce one batch and no direct writes."""
        processor = make_processor(
            AssetType.USER, mock_client, memory_store, collection_store
        )

        for summary in user_summaries:
            await processor.process(summary, ProcessingContext())

        batch = collection_store.get_batch(BUCKET, "assets/organization/users.json")
        assert batch is not None
        assert set(batch.data) == {"user-1", "user-2", "user-3"}
        assert batch.data["user-2"]["apiResponses"]["describe"] == {
            "data": {"UserName": "user-2"}
        }
        assert memory_store.put_calls == []

        await collection_store.flush_all(memory_store)
        assert memory_store.put_calls == [(BUCKET, "assets/organization/users.json")]

    async def test_group_members(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test group records carry their members."""
        processor = make_processor(
            AssetType.GROUP, mock_client, memory_store, collection_store
        )

        await processor.process(summary_factory(AssetType.GROUP, "analysts"), ProcessingContext())

        batch = collection_store.get_batch(BUCKET, "assets/organization/groups.json")
        assert batch is not None
        assert batch.data["analysts"]["apiResponses"]["members"] == {
            "data": [{"MemberName": "user-1"}]
        }
        mock_client.list_group_memberships.assert_awaited_once_with("analysts")

    async def test_folder_member_types_inferred(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test folder members get a MemberType inferred from their ARN."""
        mock_client.list_folder_members.return_value = [
            {"MemberId": "d-1", "MemberArn": "arn:aws:quicksight:us-east-1:1:dashboard/d-1"},
            {"MemberId": "t-1", "MemberArn": "arn:aws:quicksight:us-east-1:1:topic/t-1"},
            {
                "MemberId": "x",
                "MemberArn": "arn:aws:quicksight:us-east-1:1:dataset/x",
                "MemberType": "ANALYSIS",
            },
        ]
        processor = make_processor(
            AssetType.FOLDER, mock_client, memory_store, collection_store
        )

        await processor.process(summary_factory(AssetType.FOLDER, "f-1"), ProcessingContext())

        batch = collection_store.get_batch(BUCKET, "assets/organization/folders.json")
        assert batch is not None
        members = batch.data["f-1"]["apiResponses"]["members"]["data"]
        assert [m["MemberType"] for m in members] == ["DASHBOARD", None, "ANALYSIS"]


@pytest.mark.asyncio
class TestShouldUpdate:
    """Change detection against stored records."""

    async def test_unchanged_dashboard_skipped(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test a matching stored timestamp means no update."""
        memory_store.seed(
            BUCKET, DASHBOARD_KEY, stored_dashboard("2024-05-01T10:00:00+00:00")
        )
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        assert await processor.should_update(dashboard_summary) is False

    async def test_changed_dashboard_updated(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test a different stored timestamp means update."""
        memory_store.seed(BUCKET, DASHBOARD_KEY, stored_dashboard("2024-01-01T00:00:00"))
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        assert await processor.should_update(dashboard_summary) is True

    async def test_missing_record_updated(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        dashboard_summary: AssetSummary,
    ) -> None:
        """Test a never-exported asset is updated."""
        processor = make_processor(
            AssetType.DASHBOARD, mock_client, memory_store, collection_store
        )

        assert await processor.should_update(dashboard_summary) is True

    async def test_collection_types_always_update(
        self,
        mock_client: MagicMock,
        memory_store: Any,
        collection_store: CollectionStore,
        summary_factory: Callable[..., AssetSummary],
    ) -> None:
        """Test users are always processed without reading storage."""
        processor = make_processor(
            AssetType.USER, mock_client, memory_store, collection_store
        )

        assert await processor.should_update(summary_factory(AssetType.USER, "u")) is True
        assert memory_store.get_calls == []
