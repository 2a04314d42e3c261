"""Object store key layout for exported assets.

Storage Structure:
    assets/{service_path}/{sanitized_asset_id}.json   (individual storage)
    assets/organization/{service_path}.json           (collection storage)
    archived/assets/{service_path}/{sanitized_id}.json (removed individual assets)

Example:
    assets/dashboards/sales-overview.json
    assets/organization/users.json
"""

from __future__ import annotations

import re

from quicksight_export.models.assets import StorageType

ASSETS_PREFIX = "assets"
COLLECTION_FOLDER = "organization"
ARCHIVE_PREFIX = "archived"

# Characters that are unsafe or awkward in object keys
_UNSAFE_KEY_CHARS = re.compile(r'[\\/:*?"<>|]')


def sanitize_key(value: str) -> str:
    """Replace characters that are unsafe in object keys with ``_``.

    Example:
        sanitize_key("AWSReservedSSO_Admin/jdoe")  # "AWSReservedSSO_Admin_jdoe"
    """
    return _UNSAFE_KEY_CHARS.sub("_", value)


def individual_key(service_path: str, asset_id: str) -> str:
    return f"{ASSETS_PREFIX}/{service_path}/{sanitize_key(asset_id)}.json"


def collection_key(service_path: str) -> str:
    return f"{ASSETS_PREFIX}/{COLLECTION_FOLDER}/{service_path}.json"


def asset_key(
    service_path: str,
    asset_id: str,
    storage_type: StorageType = StorageType.INDIVIDUAL,
) -> str:
    """Build the storage key for an asset.

    Collection-stored assets share one key per type; the asset ID is ignored.
    """
    if storage_type == StorageType.COLLECTION:
        return collection_key(service_path)
    return individual_key(service_path, asset_id)


def individual_prefix(service_path: str) -> str:
    """Prefix under which every individually stored asset of a type lives."""
    return f"{ASSETS_PREFIX}/{service_path}/"


def archive_key(key: str) -> str:
    """Key an archived record is moved to.

    Example:
        archive_key("assets/dashboards/d-1.json")  # "archived/assets/dashboards/d-1.json"
    """
    return f"{ARCHIVE_PREFIX}/{key}"
