"""Remote API and object store clients."""

from quicksight_export.clients.object_store import ObjectStore, S3ObjectStore, serialize
from quicksight_export.clients.quicksight import (
    LIST_OPERATIONS,
    QuickSightClient,
    classify_client_error,
)

__all__ = [
    "LIST_OPERATIONS",
    "ObjectStore",
    "QuickSightClient",
    "S3ObjectStore",
    "classify_client_error",
    "serialize",
]
