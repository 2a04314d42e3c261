"""QuickSight asset export pipeline.

This package contains:
- base: retry, rate limiting, concurrency, pagination and the listing gate
- processors: the generic asset processor, per-type strategies, ingestions
- collection_store: batches for collection-stored types
- coordinator: ExportCoordinator, the pipeline entry point
"""

from quicksight_export.export.base.protocol import ExportError, ListingError

__all__ = [
    "ExportError",
    "ListingError",
]
