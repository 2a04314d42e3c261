"""Validation gate applied to every listing page.

Raw SDK items are mapped to domain objects. An item is invalid when its raw
identifier is missing, when mapping raises, or when the mapped object has an
empty identifier. Invalid items are dropped; if more than half of a page is
invalid the whole listing is aborted so a degraded upstream never produces a
near-empty export.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from quicksight_export.export.base.protocol import ListingError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

MAX_INVALID_ITEM_RATIO = 0.5


def validate_and_map(
    items: Iterable[T],
    map_fn: Callable[[T], U],
    get_id: Callable[[T], Any],
    get_mapped_id: Callable[[U], Any],
    asset_type: str,
    *,
    max_invalid_ratio: float = MAX_INVALID_ITEM_RATIO,
) -> list[U]:
    """Map raw listing items, dropping invalid ones.

    Args:
        items: Raw items from one listing page
        map_fn: Converts a raw item to its domain shape
        get_id: Reads the identifier from a raw item
        get_mapped_id: Reads the identifier from a mapped item
        asset_type: Asset type name for log and error messages
        max_invalid_ratio: Fraction of invalid items above which the page fails

    Returns:
        Mapped items in input order

    Raises:
        ListingError: If invalid / total exceeds max_invalid_ratio
    """
    item_list = list(items)
    valid: list[U] = []
    invalid_count = 0

    for item in item_list:
        if not item or not get_id(item):
            logger.error("Remote returned %s item with missing ID: %r", asset_type, item)
            invalid_count += 1
            continue

        try:
            mapped = map_fn(item)
        except Exception as e:
            logger.error("Failed to map %s item %r: %s", asset_type, item, e)
            invalid_count += 1
            continue

        if not get_mapped_id(mapped):
            logger.error("Mapped %s item has no ID after mapping: %r", asset_type, item)
            invalid_count += 1
            continue

        valid.append(mapped)

    if item_list and invalid_count / len(item_list) > max_invalid_ratio:
        raise ListingError(
            f"Too many invalid {asset_type} items from remote: "
            f"{invalid_count}/{len(item_list)}. Export aborted to prevent data loss.",
            invalid_count=invalid_count,
            total_count=len(item_list),
            source=asset_type,
        )

    if invalid_count:
        logger.warning(
            "Skipped %d invalid %s items out of %d",
            invalid_count,
            asset_type,
            len(item_list),
        )

    return valid
