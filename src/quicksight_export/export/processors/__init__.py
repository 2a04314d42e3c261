"""Asset processors.

- AssetProcessor: generic fetch/assemble/store for one asset type
- AssetStrategy records per type (strategies) and the type-keyed registry
- IngestionProcessor: SPICE ingestion history fan-out
"""

from quicksight_export.export.processors.base import (
    UPLOADED_FILE,
    AssetProcessor,
    AssetStrategy,
    HookResult,
    always_update,
    changed_since_stored,
)
from quicksight_export.export.processors.ingestion import IngestionProcessor
from quicksight_export.export.processors.registry import StrategyRegistry, get_strategy
from quicksight_export.export.processors.strategies import infer_member_type

__all__ = [
    "UPLOADED_FILE",
    "AssetProcessor",
    "AssetStrategy",
    "HookResult",
    "IngestionProcessor",
    "StrategyRegistry",
    "always_update",
    "changed_since_stored",
    "get_strategy",
    "infer_member_type",
]
