"""Configuration management."""

from quicksight_export.config.settings import ExportSettings, get_settings

__all__ = [
    "ExportSettings",
    "get_settings",
]
