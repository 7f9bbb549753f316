"""Command-line argument parsing for the immunisation tracker.

This module builds the argument parser with its subcommands (schedule,
status, sync, queue) and the shared logging options.
"""

import argparse
from datetime import date, datetime
from pathlib import Path

from .. import __version__

LOG_LEVELS = ["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"]


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser with subcommands and logging options.

    Returns:
        argparse.ArgumentParser: Configured parser. ``args.command`` names the
            chosen subcommand.

    Example:
        >>> parser = create_parser()
        >>> args = parser.parse_args(["status", "--dob", "2024-01-01", "--given", "bcg"])
        >>> args.given
        ['bcg']
    """
    parser = argparse.ArgumentParser(
        prog="immunotracker",
        description="Immunisation Tracker - child vaccination due status and offline sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s schedule                               # Print the vaccination calendar
  %(prog)s status --dob 2024-01-01                # Due and overdue doses as of today
  %(prog)s status --dob 2024-01-01 --given bcg --given opv0 --as-of 2024-03-01
  %(prog)s sync                                   # Replay queued offline writes
  %(prog)s queue --failed                         # List failed sync entries
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show version information",
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging and detailed output"
    )

    parser.add_argument(
        "--data-dir", type=Path, help="Directory holding the offline store and caches"
    )

    parser.add_argument("--origin", help="Origin the application is served from")

    # Logging arguments
    logging_group = parser.add_argument_group("logging", "Logging configuration options")

    logging_group.add_argument(
        "--log-level", choices=LOG_LEVELS, help="Set both console and file log levels"
    )

    logging_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Only show errors on console (sets console level to ERROR)",
    )

    logging_group.add_argument("--log-dir", type=Path, help="Write log files to this directory")

    logging_group.add_argument(
        "--no-log-colors", action="store_true", help="Disable colored console output"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    schedule_parser = subparsers.add_parser("schedule", help="Print the vaccination calendar")
    schedule_parser.add_argument(
        "--dob", type=parse_date, help="Show every dose still to give for this date of birth"
    )
    schedule_parser.add_argument(
        "--as-of", type=parse_date, default=None, help="Reference date (default: today)"
    )

    status_parser = subparsers.add_parser("status", help="Due and overdue doses for one child")
    status_parser.add_argument(
        "--dob", type=parse_date, required=True, help="Date of birth (YYYY-MM-DD)"
    )
    status_parser.add_argument(
        "--given",
        action="append",
        default=[],
        metavar="VACCINE_ID",
        help="Vaccine id already administered (repeatable)",
    )
    status_parser.add_argument(
        "--as-of", type=parse_date, default=None, help="Reference date (default: today)"
    )

    sync_parser = subparsers.add_parser("sync", help="Replay queued offline writes")
    sync_parser.add_argument(
        "--retry-failed", action="store_true", help="Reset failed entries to pending first"
    )
    sync_parser.add_argument(
        "--maintenance",
        action="store_true",
        help="Also refresh static assets, statistics and the version check",
    )

    queue_parser = subparsers.add_parser("queue", help="Inspect the sync queue")
    queue_parser.add_argument("--failed", action="store_true", help="List failed entries")
    queue_parser.add_argument(
        "--reset", action="store_true", help="Move failed entries back to pending"
    )

    return parser


def parse_date(date_str: str) -> date:
    """Parse date string in YYYY-MM-DD format for command-line arguments.

    Raises:
        argparse.ArgumentTypeError: If date format is invalid
    """
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError as err:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {date_str}. Use YYYY-MM-DD"
        ) from err


__all__ = [
    "create_parser",
    "parse_date",
]
