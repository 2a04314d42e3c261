"""QuickSight export CLI module.

Provides command-line tools for exporting QuickSight asset metadata.

Usage:
    python -m quicksight_export.cli export --types dashboard,user
    python -m quicksight_export.cli export --permissions-only --force
"""
