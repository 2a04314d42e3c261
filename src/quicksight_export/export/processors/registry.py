"""Asset strategy registry and processor factory.

Example usage:
    strategy = StrategyRegistry.get(AssetType.FOLDER)

    processor = StrategyRegistry.create_processor(
        AssetType.DASHBOARD,
        client,
        object_store,
        collection_store,
        bucket="my-bucket",
    )

    # Fixed processing order used by full exports
    for asset_type in StrategyRegistry.EXPORT_ORDER:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from quicksight_export.export.processors import strategies
from quicksight_export.export.processors.base import AssetProcessor, AssetStrategy
from quicksight_export.models.assets import AssetType, StorageType

if TYPE_CHECKING:
    from quicksight_export.clients.object_store import ObjectStore
    from quicksight_export.export.base.concurrency import ConcurrencyLimiter
    from quicksight_export.export.collection_store import CollectionStore


class StrategyRegistry:
    """Registry of per-type strategies.

    Export order:
        Content types first, then groups, then users. Folders come last.
    """

    STRATEGIES: dict[AssetType, AssetStrategy] = {
        s.asset_type: s for s in strategies.ALL_STRATEGIES
    }

    EXPORT_ORDER: tuple[AssetType, ...] = (
        AssetType.DASHBOARD,
        AssetType.ANALYSIS,
        AssetType.DATASET,
        AssetType.DATASOURCE,
        AssetType.GROUP,
        AssetType.USER,
        AssetType.FOLDER,
    )

    @classmethod
    def get(cls, asset_type: AssetType | str) -> AssetStrategy:
        """Return the strategy for an asset type.

        Raises:
            ValueError: If the type is not recognized
        """
        if isinstance(asset_type, str):
            asset_type = AssetType.parse(asset_type)
        try:
            return cls.STRATEGIES[asset_type]
        except KeyError:
            raise ValueError(f"No strategy registered for {asset_type}") from None

    @classmethod
    def collection_types(cls) -> list[AssetType]:
        return [
            t for t in cls.EXPORT_ORDER
            if cls.STRATEGIES[t].storage_type == StorageType.COLLECTION
        ]

    @classmethod
    def ordered(cls, asset_types: list[AssetType] | None = None) -> list[AssetType]:
        """Sort requested types into export order (all types if None)."""
        if asset_types is None:
            return list(cls.EXPORT_ORDER)
        requested = set(asset_types)
        return [t for t in cls.EXPORT_ORDER if t in requested]

    @classmethod
    def create_processor(
        cls,
        asset_type: AssetType | str,
        client: Any,
        object_store: ObjectStore,
        collection_store: CollectionStore,
        bucket: str,
        *,
        limiter: ConcurrencyLimiter | None = None,
    ) -> AssetProcessor:
        return AssetProcessor(
            cls.get(asset_type),
            client,
            object_store,
            collection_store,
            bucket,
            limiter=limiter,
        )


def get_strategy(asset_type: AssetType | str) -> AssetStrategy:
    return StrategyRegistry.get(asset_type)
