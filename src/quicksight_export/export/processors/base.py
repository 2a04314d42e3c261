"""Generic asset processor driven by per-type strategies.

One AssetProcessor instance handles every asset of one type. The type's
behavior (capabilities, storage, hook functions) comes from its
AssetStrategy; the processor owns the refresh policy, concurrent hook
execution, record assembly and storage routing.

Persisted record shape:

    {
        "apiResponses": {
            "list": {"data": <listing item>},
            "describe": {"data": ...},
            "definition": {"data": ...},        # types with definitions
            "permissions": {"data": [...]},
            "tags": {"data": [...]},
            "<special>": {"data": ...},         # e.g. members, refreshSchedules
        }
    }

Records carry no timestamps, so re-exporting unchanged upstream data
produces identical bytes.

Example usage:
    processor = AssetProcessor(
        get_strategy(AssetType.DASHBOARD),
        client,
        object_store,
        collection_store,
        bucket="quicksight-metadata-bucket-123456789012",
    )
    result = await processor.process(summary, ProcessingContext())
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from quicksight_export.export.base.concurrency import ConcurrencyLimiter
from quicksight_export.export.base.protocol import ObjectNotFoundError, PermanentError
from quicksight_export.models.assets import (
    AssetSummary,
    AssetType,
    Capabilities,
    ProcessingContext,
    StorageType,
)
from quicksight_export.models.summary import (
    ProcessingDetails,
    ProcessingResult,
    ProcessingStatus,
)
from quicksight_export.utils.storage_keys import asset_key

if TYPE_CHECKING:
    from quicksight_export.clients.object_store import ObjectStore
    from quicksight_export.export.collection_store import CollectionStore

logger = logging.getLogger(__name__)

Hook = Callable[[Any, AssetSummary], Awaitable[Any]]
ShouldUpdate = Callable[[dict[str, Any] | None, AssetSummary], bool]

CORE_RESPONSES: frozenset[str] = frozenset(
    {"list", "describe", "definition", "permissions", "tags"}
)

# Marker returned by describe hooks for assets that cannot be described
UPLOADED_FILE = {"_isUploadedFile": True}
UPLOADED_FILE_ERROR = "Asset is an uploaded file that cannot be described"


@dataclass(frozen=True, slots=True)
class HookResult:
    """Outcome of one guarded hook call.

    Attributes:
        value: Hook return value, or the category default on failure
        warning: Failure description when the default was substituted
        fetched: False when the hook was not called at all
    """

    value: Any = None
    warning: str | None = None
    fetched: bool = True

    @classmethod
    def skipped(cls, default: Any) -> HookResult:
        return cls(value=default, fetched=False)

    @property
    def failed(self) -> bool:
        return self.warning is not None


def always_update(stored: dict[str, Any] | None, summary: AssetSummary) -> bool:
    """Change detection for types without a reliable update timestamp."""
    return True


def changed_since_stored(stored: dict[str, Any] | None, summary: AssetSummary) -> bool:
    """True when nothing is stored or the listed update time differs."""
    if not stored:
        return True
    listed = (
        stored.get("apiResponses", {}).get("list", {}).get("data") or {}
    )
    stored_time = listed.get("LastUpdatedTime")
    if stored_time is None or summary.last_updated_time is None:
        return True
    return str(stored_time) != summary.last_updated_time


@dataclass(frozen=True, slots=True)
class AssetStrategy:
    """Per-type behavior consumed by AssetProcessor.

    Attributes:
        asset_type: Type this strategy handles
        capabilities: Supported detail categories
        storage_type: Individual object per asset, or one shared collection
        id_field: Listing key holding the asset ID
        describe: Hook returning the describe response
        name_field: Listing key holding the display name
        describe_definition: Hook returning the definition response
        get_permissions: Hook returning the permission list
        get_tags: Hook returning the tag list
        special_operations: Hook returning a mapping of extra responses
        should_update: Change detection against the stored record
    """

    asset_type: AssetType
    capabilities: Capabilities
    storage_type: StorageType
    id_field: str
    describe: Hook
    name_field: str = "Name"
    describe_definition: Hook | None = None
    get_permissions: Hook | None = None
    get_tags: Hook | None = None
    special_operations: Hook | None = None
    should_update: ShouldUpdate = changed_since_stored

    @property
    def service_path(self) -> str:
        return self.asset_type.service_path

    def map_list_item(self, item: dict[str, Any]) -> AssetSummary:
        return AssetSummary.from_list_item(
            self.asset_type, item, id_field=self.id_field, name_field=self.name_field
        )

    def get_list_id(self, item: dict[str, Any]) -> Any:
        return item.get(self.id_field)

    def storage_key(self, asset_id: str) -> str:
        return asset_key(self.service_path, asset_id, self.storage_type)


class AssetProcessor:
    """Fetches, assembles and stores the record for one asset at a time.

    process() never raises: hook failures degrade their category to its
    default, and any other failure is reported as an ERROR result.
    """

    def __init__(
        self,
        strategy: AssetStrategy,
        client: Any,
        object_store: ObjectStore,
        collection_store: CollectionStore,
        bucket: str,
        *,
        limiter: ConcurrencyLimiter | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            strategy: Behavior of the asset type
            client: Remote API client passed to every hook
            object_store: Store for individual records and existing-record reads
            collection_store: Run-owned batches for collection types
            bucket: Target bucket
            limiter: Sub-fetch limiter shared by all assets of this processor
        """
        self.strategy = strategy
        self.client = client
        self.object_store = object_store
        self.collection_store = collection_store
        self.bucket = bucket
        self.limiter = limiter or ConcurrencyLimiter(
            20, name=f"{strategy.service_path}-subfetch"
        )

    @property
    def asset_type(self) -> AssetType:
        return self.strategy.asset_type

    @property
    def capabilities(self) -> Capabilities:
        return self.strategy.capabilities

    async def process(
        self, summary: AssetSummary, context: ProcessingContext
    ) -> ProcessingResult:
        """Fetch, assemble and store one asset.

        Args:
            summary: Listed asset
            context: Force-refresh flag and refresh policy

        Returns:
            ProcessingResult with SUCCESS or ERROR status
        """
        start = time.monotonic()
        options = context.effective_options
        details = ProcessingDetails(
            definition=options.definitions,
            permissions=options.permissions,
            tags=options.tags,
        )

        try:
            record, warnings = await self.build_record(summary, context)
            await self.store_record(summary.asset_id, record)
        except Exception as e:
            logger.error(
                "Failed to process %s %s: %s", self.asset_type.value, summary.asset_id, e
            )
            return ProcessingResult(
                asset_id=summary.asset_id,
                asset_name=summary.asset_name,
                status=ProcessingStatus.ERROR,
                error=str(e) or type(e).__name__,
                details=details,
                processing_time_ms=(time.monotonic() - start) * 1000,
            )

        return ProcessingResult(
            asset_id=summary.asset_id,
            asset_name=summary.asset_name,
            status=ProcessingStatus.SUCCESS,
            details=details,
            processing_time_ms=(time.monotonic() - start) * 1000,
            category_warnings=tuple(warnings),
        )

    async def build_record(
        self, summary: AssetSummary, context: ProcessingContext
    ) -> tuple[dict[str, Any], list[str]]:
        """Run the in-scope hooks and assemble the persisted record.

        Returns:
            The record and the names of categories that fell back to defaults
        """
        options = context.effective_options
        caps = self.capabilities
        strategy = self.strategy

        existing: dict[str, Any] = {}
        if options.is_metadata_only and strategy.storage_type == StorageType.INDIVIDUAL:
            existing = await self.load_existing_responses(summary.asset_id)

        fetch_definition = (
            caps.has_definition
            and options.definitions
            and strategy.describe_definition is not None
        )
        fetch_permissions = caps.has_permissions and options.permissions
        fetch_tags = caps.has_tags and options.tags
        fetch_special = (
            caps.has_special_operations and strategy.special_operations is not None
        )

        describe, definition, permissions, tags, special = await asyncio.gather(
            self._guarded("describe", strategy.describe, summary, None, options.definitions),
            self._guarded(
                "definition", strategy.describe_definition, summary, None, fetch_definition
            ),
            self._guarded(
                "permissions", strategy.get_permissions, summary, [], fetch_permissions
            ),
            self._guarded("tags", strategy.get_tags, summary, [], fetch_tags),
            self._guarded(
                "special", strategy.special_operations, summary, {}, fetch_special
            ),
        )

        responses: dict[str, Any] = {"list": {"data": summary.raw}}

        if describe.fetched:
            if describe.value == UPLOADED_FILE:
                responses["describe"] = {"data": None, "error": UPLOADED_FILE_ERROR}
            elif describe.value is not None:
                responses["describe"] = {"data": describe.value}
        elif "describe" in existing:
            responses["describe"] = existing["describe"]

        if caps.has_definition:
            if definition.fetched and definition.value is not None:
                responses["definition"] = {"data": definition.value}
            elif "definition" in existing:
                responses["definition"] = existing["definition"]
            else:
                responses["definition"] = {"data": None}

        responses["permissions"] = self._category(
            "permissions", permissions, existing, caps.has_permissions
        )
        responses["tags"] = self._category("tags", tags, existing, caps.has_tags)

        if special.fetched and not special.failed:
            for key, value in (special.value or {}).items():
                responses[key] = {"data": value}
        else:
            for key, value in existing.items():
                if key not in CORE_RESPONSES:
                    responses[key] = value

        warnings = [
            name
            for name, result in (
                ("describe", describe),
                ("definition", definition),
                ("permissions", permissions),
                ("tags", tags),
                ("special", special),
            )
            if result.failed
        ]
        return {"apiResponses": responses}, warnings

    @staticmethod
    def _category(
        name: str,
        result: HookResult,
        existing: dict[str, Any],
        capable: bool,
    ) -> dict[str, Any]:
        if result.fetched:
            return {"data": result.value}
        if capable and name in existing:
            return dict(existing[name])
        return {"data": result.value}

    async def _guarded(
        self,
        category: str,
        hook: Hook | None,
        summary: AssetSummary,
        default: Any,
        enabled: bool,
    ) -> HookResult:
        """Run one hook under the sub-fetch limiter, never raising."""
        if not enabled or hook is None:
            return HookResult.skipped(default)

        try:
            async with self.limiter:
                value = await hook(self.client, summary)
        except PermanentError as e:
            logger.debug(
                "%s %s: %s unavailable (%s)",
                self.asset_type.value,
                summary.asset_id,
                category,
                e,
            )
            return HookResult(value=default, warning=str(e))
        except Exception as e:
            logger.warning(
                "%s %s: %s failed, using default: %s",
                self.asset_type.value,
                summary.asset_id,
                category,
                e,
            )
            return HookResult(value=default, warning=str(e) or type(e).__name__)

        return HookResult(value=default if value is None and default is not None else value)

    async def load_existing_responses(self, asset_id: str) -> dict[str, Any]:
        """Read the stored record's apiResponses, or {} if unavailable."""
        key = self.strategy.storage_key(asset_id)
        try:
            stored = await self.object_store.get(self.bucket, key)
        except ObjectNotFoundError:
            return {}
        except Exception as e:
            logger.warning("Could not read existing record %s: %s", key, e)
            return {}
        if not isinstance(stored, dict):
            return {}
        responses = stored.get("apiResponses")
        return responses if isinstance(responses, dict) else {}

    async def load_stored_record(self, asset_id: str) -> dict[str, Any] | None:
        """Read the stored record for change detection, or None."""
        key = self.strategy.storage_key(asset_id)
        try:
            stored = await self.object_store.get(self.bucket, key)
        except ObjectNotFoundError:
            return None
        except Exception as e:
            logger.warning("Could not read stored record %s: %s", key, e)
            return None
        return stored if isinstance(stored, dict) else None

    async def should_update(self, summary: AssetSummary) -> bool:
        """Decide whether an asset changed since it was last exported."""
        if self.strategy.storage_type == StorageType.COLLECTION:
            return self.strategy.should_update(None, summary)
        stored = await self.load_stored_record(summary.asset_id)
        return self.strategy.should_update(stored, summary)

    async def store_record(self, asset_id: str, record: dict[str, Any]) -> None:
        key = self.strategy.storage_key(asset_id)
        if self.strategy.storage_type == StorageType.COLLECTION:
            await self.collection_store.add(self.bucket, key, asset_id, record)
        else:
            await self.object_store.put(self.bucket, key, record)
