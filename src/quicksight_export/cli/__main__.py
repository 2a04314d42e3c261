"""CLI entry point for quicksight_export.

Usage:
    python -m quicksight_export.cli export
    python -m quicksight_export.cli export --types dashboard,user --force
    python -m quicksight_export.cli export --permissions-only --ingestions
"""

from __future__ import annotations

import argparse
import logging
import sys


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="quicksight-export",
        description="QuickSight asset export tools",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export QuickSight assets to the metadata bucket",
    )
    export_parser.add_argument(
        "--types",
        type=str,
        help="Comma-separated asset types (e.g., dashboard,user). Default: all",
    )
    export_parser.add_argument(
        "--permissions-only",
        action="store_true",
        help="Refresh permissions only, keeping stored definitions",
    )
    export_parser.add_argument(
        "--tags-only",
        action="store_true",
        help="Refresh tags only, keeping stored definitions",
    )
    export_parser.add_argument(
        "--force",
        action="store_true",
        help="Process every asset, ignoring change detection",
    )
    export_parser.add_argument(
        "--ingestions",
        action="store_true",
        help="Also export SPICE ingestion history",
    )
    export_parser.add_argument(
        "--bucket",
        type=str,
        help="Target bucket (default: EXPORT_BUCKET_NAME or the account bucket)",
    )
    export_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the summary as JSON",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "export":
        from quicksight_export.cli.export import run_export

        return run_export(
            types=args.types,
            permissions_only=args.permissions_only,
            tags_only=args.tags_only,
            force=args.force,
            include_ingestions=args.ingestions,
            bucket=args.bucket,
            as_json=args.json,
        )
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
