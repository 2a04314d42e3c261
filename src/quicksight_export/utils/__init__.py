"""Utility functions and helpers."""

from quicksight_export.utils.storage_keys import (
    asset_key,
    collection_key,
    individual_key,
    sanitize_key,
)

__all__ = [
    "asset_key",
    "collection_key",
    "individual_key",
    "sanitize_key",
]
