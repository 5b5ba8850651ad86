#!/usr/bin/env python3
"""DayMark application entry point.

This module provides a unified entry point for all interfaces:
- CLI: Command-line interface for events, notes and sync
- Web: Snapshot server that devices sync through

Usage:
    python -m daymark.main cli list-events            # Use CLI
    python -m daymark.main cli sync login me@example  # Log in and sync
    python -m daymark.main web [--port 8385]          # Start snapshot server
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the unified argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="DayMark - Local-first calendar and daily journal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m daymark.main cli list-events --date 2025-01-15
  python -m daymark.main cli add-event --title Lunch --date 2025-01-15 --start 12:00
  python -m daymark.main cli sync login me@example.com
  python -m daymark.main cli sync export-token
  python -m daymark.main web --port 8385     Start snapshot server on port 8385
""",
    )

    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/daymark/)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    # Create subparsers for each interface
    subparsers = parser.add_subparsers(dest="interface", help="Interface to use")

    # Add CLI subparser (imports cli module)
    from daymark.cli import add_cli_subparser
    add_cli_subparser(subparsers)

    # Add Web subparser (imports web module)
    from daymark.web import add_web_subparser
    add_web_subparser(subparsers)

    return parser


def main() -> NoReturn:
    """Main entry point for DayMark.

    Parses arguments and dispatches to the appropriate interface.
    """
    parser = create_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Dispatch to appropriate interface
    if args.interface == "cli":
        from daymark.cli import run as run_cli
        exit_code = run_cli(args.config_dir, args)
    elif args.interface == "web":
        from daymark.web import run as run_web
        exit_code = run_web(args.config_dir, args)
    else:
        parser.print_help()
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
