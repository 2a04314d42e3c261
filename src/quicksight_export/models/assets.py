"""Data models for exported QuickSight assets.

This module defines the asset type vocabulary, the normalized listing shape
(AssetSummary) and the per-run refresh policy.

Example usage:
    summary = AssetSummary.from_list_item(
        AssetType.DASHBOARD,
        {"DashboardId": "d-1", "Name": "Sales", "LastUpdatedTime": "2024-05-01T10:00:00"},
        id_field="DashboardId",
    )

    context = ProcessingContext(refresh_options=RefreshOptions.permissions_only())
    context.effective_options.definitions  # False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AssetType(Enum):
    """Asset types exported from QuickSight."""

    DASHBOARD = "dashboard"
    ANALYSIS = "analysis"
    DATASET = "dataset"
    DATASOURCE = "datasource"
    FOLDER = "folder"
    USER = "user"
    GROUP = "group"

    @property
    def service_path(self) -> str:
        """Plural path segment used in storage keys (e.g. ``analyses``)."""
        return _SERVICE_PATHS[self]

    @property
    def is_organizational(self) -> bool:
        """Users, groups and folders have no reliable change timestamp."""
        return self in (AssetType.FOLDER, AssetType.USER, AssetType.GROUP)

    @classmethod
    def parse(cls, value: str) -> AssetType:
        """Parse a type name, accepting singular or plural forms.

        Raises:
            ValueError: If the name matches no asset type
        """
        normalized = value.strip().lower()
        for asset_type in cls:
            if normalized in (asset_type.value, asset_type.service_path):
                return asset_type
        raise ValueError(f"Unknown asset type: {value}")


_SERVICE_PATHS: dict[AssetType, str] = {
    AssetType.DASHBOARD: "dashboards",
    AssetType.ANALYSIS: "analyses",
    AssetType.DATASET: "datasets",
    AssetType.DATASOURCE: "datasources",
    AssetType.FOLDER: "folders",
    AssetType.USER: "users",
    AssetType.GROUP: "groups",
}


class StorageType(Enum):
    """Where an asset's persisted record is written."""

    INDIVIDUAL = "individual"
    COLLECTION = "collection"


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Which detail categories an asset type supports.

    A False capability turns the matching fetch into a no-op returning the
    empty default; the persisted field is still written.
    """

    has_definition: bool = False
    has_permissions: bool = False
    has_tags: bool = False
    has_special_operations: bool = False


@dataclass(frozen=True, slots=True)
class AssetSummary:
    """One asset as returned by a listing call, normalized.

    Attributes:
        asset_type: Type of the asset
        asset_id: Unique identifier (user and group names for those types)
        asset_name: Display name, falls back to the ID
        arn: Resource ARN if listed
        created_time: ISO timestamp string if listed
        last_updated_time: ISO timestamp string if listed
        import_mode: Dataset import mode (SPICE or DIRECT_QUERY or FILE)
        status: Listing status where the API reports one
        raw: The listing item as returned by the API
    """

    asset_type: AssetType
    asset_id: str
    asset_name: str
    arn: str | None = None
    created_time: str | None = None
    last_updated_time: str | None = None
    import_mode: str | None = None
    status: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_list_item(
        cls,
        asset_type: AssetType,
        item: dict[str, Any],
        *,
        id_field: str,
        name_field: str = "Name",
    ) -> AssetSummary:
        """Build a summary from a raw listing item.

        Args:
            asset_type: Type of the listed asset
            item: Raw item from the listing response
            id_field: Key holding the identifier (e.g. ``DashboardId``)
            name_field: Key holding the display name

        Raises:
            KeyError: If the identifier key is absent
        """
        asset_id = str(item[id_field]).strip()
        return cls(
            asset_type=asset_type,
            asset_id=asset_id,
            asset_name=str(item.get(name_field) or asset_id),
            arn=item.get("Arn"),
            created_time=_as_str(item.get("CreatedTime")),
            last_updated_time=_as_str(item.get("LastUpdatedTime")),
            import_mode=item.get("ImportMode"),
            status=item.get("Status"),
            raw=dict(item),
        )

    @property
    def is_deleted(self) -> bool:
        return (self.status or "").upper() == "DELETED"


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return str(value.isoformat())
    return str(value)


@dataclass(frozen=True, slots=True)
class RefreshOptions:
    """Which detail categories to fetch during this run.

    Attributes:
        definitions: Fetch describe and definition responses
        permissions: Fetch permissions
        tags: Fetch tags
    """

    definitions: bool = True
    permissions: bool = True
    tags: bool = True

    @classmethod
    def full(cls) -> RefreshOptions:
        return cls()

    @classmethod
    def permissions_only(cls) -> RefreshOptions:
        return cls(definitions=False, permissions=True, tags=False)

    @classmethod
    def tags_only(cls) -> RefreshOptions:
        return cls(definitions=False, permissions=False, tags=True)

    @property
    def is_metadata_only(self) -> bool:
        """True when permissions or tags are refreshed without definitions."""
        return not self.definitions and (self.permissions or self.tags)


@dataclass(frozen=True, slots=True)
class ProcessingContext:
    """Per-run context passed to AssetProcessor.process.

    Attributes:
        force_refresh: Process every asset regardless of change detection
        refresh_options: Caller policy; None means refresh everything
    """

    force_refresh: bool = False
    refresh_options: RefreshOptions | None = None

    @property
    def effective_options(self) -> RefreshOptions:
        return self.refresh_options or RefreshOptions.full()
