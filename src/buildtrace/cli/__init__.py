"""
BuildTrace Command Line Interface

Modules:
- analyze: Analysis commands (segment, analyze, csv, report, blocks)
- utils: Shared utilities
"""

import argparse
import sys

from .. import __version__
from ..logging import configure_logging
from .analyze import register_analyze_commands


def create_parser():
    """Create and configure the argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="buildtrace",
        description="BuildTrace: HLO timing analysis for recorded building games"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--config", "-c", help="Analysis config JSON file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Minimum log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-format",
        default="console",
        choices=["console", "json", "pretty"],
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    register_analyze_commands(subparsers)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    configure_logging(level=args.log_level, format=args.log_format)
    args.func(args)


__all__ = [
    'main',
    'create_parser',
    'register_analyze_commands',
]
