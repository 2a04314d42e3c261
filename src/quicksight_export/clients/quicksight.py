"""QuickSight API client used by the export pipeline.

Wraps the blocking boto3 QuickSight client with the pipeline's call
discipline. Every call:

1. waits for a slot in the global API concurrency limiter,
2. waits for a token from the request-rate limiter (one bucket per
   operation; permissions calls share one stricter bucket),
3. runs the boto3 call in a worker thread,
4. converts botocore errors into the export error taxonomy,

and the whole attempt is wrapped in a RetryHandler (standard tier, or the
throttled tier for permissions and tags).

Responses are returned without ``ResponseMetadata``/``Status``/``RequestId``
and with datetimes converted to ISO strings, so they can be persisted as-is.

Example usage:
    client = QuickSightClient(account_id="123456789012", region="us-east-1")

    page = await client.list_page(AssetType.DASHBOARD, cursor=None, page_size=100)
    dashboard = await client.describe_dashboard(page.items[0]["DashboardId"])
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.export.base.pagination import Page
from quicksight_export.export.base.protocol import (
    AccessDeniedError,
    ExportError,
    RateLimitError,
    RemoteApiError,
    ResourceNotFoundError,
    RetryableError,
)
from quicksight_export.export.base.rate_limiter import RateLimiter
from quicksight_export.export.base.retry_handler import RetryConfig, RetryHandler
from quicksight_export.models.assets import AssetType

logger = logging.getLogger(__name__)

THROTTLING_CODES: frozenset[str] = frozenset(
    {
        "ThrottlingException",
        "Throttling",
        "TooManyRequestsException",
        "RequestLimitExceeded",
        "RateLimitExceededException",
    }
)

RETRYABLE_CODES: frozenset[str] = frozenset(
    {
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "RequestTimeout",
        "RequestTimeoutException",
        "InternalServerError",
        "InternalFailureException",
        "InternalError",
    }
)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({500, 502, 503, 504})

NOT_FOUND_CODES: frozenset[str] = frozenset({"ResourceNotFoundException", "NotFound"})
ACCESS_DENIED_CODES: frozenset[str] = frozenset(
    {"AccessDeniedException", "UnauthorizedException", "AccessDenied"}
)

_METADATA_KEYS = frozenset({"ResponseMetadata", "Status", "RequestId"})


@dataclass(frozen=True, slots=True)
class ListOperation:
    """How to list one asset type.

    Attributes:
        method: boto3 method name
        result_key: Response key holding the items
        namespaced: Whether the call takes a Namespace parameter
        resource: ARN resource segment used for tag lookups
    """

    method: str
    result_key: str
    namespaced: bool = False
    resource: str = ""


LIST_OPERATIONS: dict[AssetType, ListOperation] = {
    AssetType.DASHBOARD: ListOperation(
        "list_dashboards", "DashboardSummaryList", resource="dashboard"
    ),
    AssetType.ANALYSIS: ListOperation(
        "list_analyses", "AnalysisSummaryList", resource="analysis"
    ),
    AssetType.DATASET: ListOperation(
        "list_data_sets", "DataSetSummaries", resource="dataset"
    ),
    AssetType.DATASOURCE: ListOperation(
        "list_data_sources", "DataSources", resource="datasource"
    ),
    AssetType.FOLDER: ListOperation(
        "list_folders", "FolderSummaryList", resource="folder"
    ),
    AssetType.USER: ListOperation(
        "list_users", "UserList", namespaced=True, resource="user"
    ),
    AssetType.GROUP: ListOperation(
        "list_groups", "GroupList", namespaced=True, resource="group"
    ),
}


def classify_client_error(
    error: Exception,
    operation_name: str,
    asset_id: str | None = None,
) -> ExportError:
    """Convert a botocore exception into the export error taxonomy.

    Args:
        error: Exception raised by boto3
        operation_name: boto3 operation for error context
        asset_id: Asset the call was about, if any

    Returns:
        RateLimitError, RetryableError, ResourceNotFoundError,
        AccessDeniedError or RemoteApiError
    """
    if isinstance(error, (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)):
        return RetryableError(
            f"{operation_name} connection failure: {error}",
            source=operation_name,
            asset_id=asset_id,
            cause=error,
        )

    if not isinstance(error, ClientError):
        return RemoteApiError(
            f"{operation_name} failed: {error}",
            source=operation_name,
            asset_id=asset_id,
            cause=error,
        )

    details = error.response.get("Error", {})
    code = str(details.get("Code", ""))
    message = str(details.get("Message", "")) or str(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    context: dict[str, Any] = {"source": operation_name, "asset_id": asset_id, "cause": error}

    if (
        code in THROTTLING_CODES
        or status == 429
        or "rate exceeded" in message.lower()
    ):
        return RateLimitError(f"{operation_name} throttled: {message}", **context)

    if code in RETRYABLE_CODES or status in RETRYABLE_STATUS_CODES:
        return RetryableError(
            f"{operation_name} transient failure: {code} {message}",
            status_code=status,
            **context,
        )

    if code in NOT_FOUND_CODES:
        return ResourceNotFoundError(
            f"{operation_name}: resource not found: {message}", code=code, **context
        )

    if code in ACCESS_DENIED_CODES:
        return AccessDeniedError(
            f"{operation_name}: access denied: {message}", code=code, **context
        )

    return RemoteApiError(f"{operation_name} failed: {code} {message}", code=code, **context)


def to_jsonable(value: Any) -> Any:
    """Recursively convert datetimes to ISO strings."""
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def clean_response(response: dict[str, Any]) -> dict[str, Any]:
    """Drop top-level call metadata and make the response JSON-safe."""
    return {k: to_jsonable(v) for k, v in response.items() if k not in _METADATA_KEYS}


class QuickSightClient:
    """Async facade over the boto3 QuickSight client."""

    def __init__(
        self,
        account_id: str,
        region: str | None = None,
        *,
        client: Any | None = None,
        limiter: ConcurrencyLimiter | None = None,
        rate_limiter: RateLimiter | None = None,
        permissions_rate_limiter: RateLimiter | None = None,
        retry_handler: RetryHandler | None = None,
        throttled_retry_handler: RetryHandler | None = None,
        namespace: str = "default",
    ) -> None:
        """Initialize the client.

        Args:
            account_id: AWS account that owns the QuickSight assets
            region: AWS region of the QuickSight account
            client: Pre-built boto3 QuickSight client (mainly for tests)
            limiter: Global API call limiter
            rate_limiter: Request-rate limiter for general calls, keyed by operation
            permissions_rate_limiter: Request-rate limiter for permissions calls
            retry_handler: Standard-tier retry handler
            throttled_retry_handler: Throttled-tier retry handler
            namespace: QuickSight namespace for users and groups
        """
        self.account_id = account_id
        self.region = region or "us-east-1"
        self.namespace = namespace
        self._client = client or boto3.client("quicksight", region_name=self.region)
        self.limiter = limiter or ConcurrencyLimiter(20, name="quicksight-api")
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_second=10.0, per_key=True
        )
        self.permissions_rate_limiter = permissions_rate_limiter or RateLimiter(
            requests_per_second=2.0
        )
        self.retry_handler = retry_handler or RetryHandler(RetryConfig.standard())
        self.throttled_retry_handler = throttled_retry_handler or RetryHandler(
            RetryConfig.throttled()
        )

    # =========================================================================
    # Call plumbing
    # =========================================================================

    async def _call(
        self,
        method: str,
        *,
        asset_id: str | None = None,
        throttled: bool = False,
        permissions: bool = False,
        account_scoped: bool = True,
        **params: Any,
    ) -> dict[str, Any]:
        """Invoke one boto3 operation with limiting, classification and retry."""
        if account_scoped:
            params["AwsAccountId"] = self.account_id
        rate_limiter = self.permissions_rate_limiter if permissions else self.rate_limiter
        rate_key = None if permissions else method
        operation = getattr(self._client, method)

        async def _attempt() -> dict[str, Any]:
            async with self.limiter:
                await rate_limiter.wait(rate_key)
                try:
                    response = await asyncio.to_thread(operation, **params)
                except (ClientError, BotoCoreError) as e:
                    raise classify_client_error(e, method, asset_id) from e
            return clean_response(response)

        handler = self.throttled_retry_handler if throttled else self.retry_handler
        return await handler.execute(_attempt, operation_name=method, source=asset_id)

    async def _collect(
        self,
        method: str,
        result_key: str,
        *,
        asset_id: str | None = None,
        **params: Any,
    ) -> list[dict[str, Any]]:
        """Follow NextToken for small sub-resource listings."""
        items: list[dict[str, Any]] = []
        next_token: str | None = None
        while True:
            call_params = dict(params)
            if next_token:
                call_params["NextToken"] = next_token
            response = await self._call(method, asset_id=asset_id, **call_params)
            items.extend(response.get(result_key) or [])
            next_token = response.get("NextToken")
            if not next_token:
                return items

    def resource_arn(self, asset_type: AssetType, asset_id: str) -> str:
        op = LIST_OPERATIONS[asset_type]
        resource = f"{op.resource}/{self.namespace}" if op.namespaced else op.resource
        return f"arn:aws:quicksight:{self.region}:{self.account_id}:{resource}/{asset_id}"

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_page(
        self,
        asset_type: AssetType,
        cursor: str | None,
        page_size: int,
    ) -> Page[dict[str, Any]]:
        """Fetch one listing page for an asset type.

        Not retried here; the paginator owns retry for page fetches.
        """
        op = LIST_OPERATIONS[asset_type]
        params: dict[str, Any] = {
            "AwsAccountId": self.account_id,
            "MaxResults": page_size,
        }
        if op.namespaced:
            params["Namespace"] = self.namespace
        if cursor:
            params["NextToken"] = cursor

        operation = getattr(self._client, op.method)
        async with self.limiter:
            await self.rate_limiter.wait(op.method)
            try:
                response = await asyncio.to_thread(operation, **params)
            except (ClientError, BotoCoreError) as e:
                raise classify_client_error(e, op.method) from e

        cleaned = clean_response(response)
        return Page(
            items=list(cleaned.get(op.result_key) or []),
            next_cursor=cleaned.get("NextToken"),
        )

    # =========================================================================
    # Dashboards and analyses
    # =========================================================================

    async def describe_dashboard(self, dashboard_id: str) -> dict[str, Any]:
        response = await self._call(
            "describe_dashboard", asset_id=dashboard_id, DashboardId=dashboard_id
        )
        return response.get("Dashboard") or {}

    async def describe_dashboard_definition(self, dashboard_id: str) -> dict[str, Any]:
        return await self._call(
            "describe_dashboard_definition",
            asset_id=dashboard_id,
            DashboardId=dashboard_id,
        )

    async def describe_dashboard_permissions(self, dashboard_id: str) -> list[dict[str, Any]]:
        response = await self._call(
            "describe_dashboard_permissions",
            asset_id=dashboard_id,
            throttled=True,
            permissions=True,
            DashboardId=dashboard_id,
        )
        return response.get("Permissions") or []

    async def describe_analysis(self, analysis_id: str) -> dict[str, Any]:
        response = await self._call(
            "describe_analysis", asset_id=analysis_id, AnalysisId=analysis_id
        )
        return response.get("Analysis") or {}

    async def describe_analysis_definition(self, analysis_id: str) -> dict[str, Any]:
        return await self._call(
            "describe_analysis_definition",
            asset_id=analysis_id,
            AnalysisId=analysis_id,
        )

    async def describe_analysis_permissions(self, analysis_id: str) -> list[dict[str, Any]]:
        response = await self._call(
            "describe_analysis_permissions",
            asset_id=analysis_id,
            throttled=True,
            permissions=True,
            AnalysisId=analysis_id,
        )
        return response.get("Permissions") or []

    # =========================================================================
    # Datasets and data sources
    # =========================================================================

    async def describe_data_set(self, dataset_id: str) -> dict[str, Any]:
        response = await self._call(
            "describe_data_set", asset_id=dataset_id, DataSetId=dataset_id
        )
        return response.get("DataSet") or {}

    async def describe_data_set_permissions(self, dataset_id: str) -> list[dict[str, Any]]:
        response = await self._call(
            "describe_data_set_permissions",
            asset_id=dataset_id,
            throttled=True,
            permissions=True,
            DataSetId=dataset_id,
        )
        return response.get("Permissions") or []

    async def describe_data_set_refresh_properties(self, dataset_id: str) -> dict[str, Any]:
        response = await self._call(
            "describe_data_set_refresh_properties",
            asset_id=dataset_id,
            DataSetId=dataset_id,
        )
        return response.get("DataSetRefreshProperties") or {}

    async def list_refresh_schedules(self, dataset_id: str) -> list[dict[str, Any]]:
        response = await self._call(
            "list_refresh_schedules", asset_id=dataset_id, DataSetId=dataset_id
        )
        return response.get("RefreshSchedules") or []

    async def describe_data_source(self, datasource_id: str) -> dict[str, Any]:
        response = await self._call(
            "describe_data_source", asset_id=datasource_id, DataSourceId=datasource_id
        )
        return response.get("DataSource") or {}

    async def describe_data_source_permissions(
        self, datasource_id: str
    ) -> list[dict[str, Any]]:
        response = await self._call(
            "describe_data_source_permissions",
            asset_id=datasource_id,
            throttled=True,
            permissions=True,
            DataSourceId=datasource_id,
        )
        return response.get("Permissions") or []

    # =========================================================================
    # Folders, groups and users
    # =========================================================================

    async def describe_folder(self, folder_id: str) -> dict[str, Any]:
        response = await self._call(
            "describe_folder", asset_id=folder_id, FolderId=folder_id
        )
        return response.get("Folder") or {}

    async def describe_folder_permissions(self, folder_id: str) -> list[dict[str, Any]]:
        response = await self._call(
            "describe_folder_permissions",
            asset_id=folder_id,
            throttled=True,
            permissions=True,
            FolderId=folder_id,
        )
        return response.get("Permissions") or []

    async def list_folder_members(self, folder_id: str) -> list[dict[str, Any]]:
        return await self._collect(
            "list_folder_members",
            "FolderMemberList",
            asset_id=folder_id,
            FolderId=folder_id,
        )

    async def list_group_memberships(self, group_name: str) -> list[dict[str, Any]]:
        return await self._collect(
            "list_group_memberships",
            "GroupMemberList",
            asset_id=group_name,
            GroupName=group_name,
            Namespace=self.namespace,
        )

    # =========================================================================
    # Tags and ingestions
    # =========================================================================

    async def list_tags(self, asset_type: AssetType, asset_id: str) -> list[dict[str, Any]]:
        response = await self._call(
            "list_tags_for_resource",
            asset_id=asset_id,
            throttled=True,
            account_scoped=False,
            ResourceArn=self.resource_arn(asset_type, asset_id),
        )
        return response.get("Tags") or []

    async def list_ingestions(self, dataset_id: str) -> list[dict[str, Any]]:
        return await self._collect(
            "list_ingestions", "Ingestions", asset_id=dataset_id, DataSetId=dataset_id
        )

    async def describe_ingestion(
        self, dataset_id: str, ingestion_id: str
    ) -> dict[str, Any]:
        response = await self._call(
            "describe_ingestion",
            asset_id=dataset_id,
            DataSetId=dataset_id,
            IngestionId=ingestion_id,
        )
        return response.get("Ingestion") or {}
