"""CLI module for the immunisation tracker.

This module provides the command-line interface: argument parsing, settings
overrides and dispatch to the subcommands.
"""

from typing import List, Optional

from ..config.settings import get_settings
from ..utils.exceptions import TrackerError
from ..utils.logging import setup_logging
from .commands import run_queue_command, run_schedule_command, run_status_command, run_sync_command
from .config import apply_cli_overrides
from .parser import create_parser, parse_date


async def main_entry(argv: Optional[List[str]] = None) -> int:
    """Main entry point with argument parsing.

    Args:
        argv: Arguments to parse instead of ``sys.argv``

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = apply_cli_overrides(get_settings(), args)
    setup_logging(settings)

    try:
        if args.command == "schedule":
            return run_schedule_command(args)
        if args.command == "status":
            return run_status_command(args)
        if args.command == "sync":
            return await run_sync_command(args, settings)
        if args.command == "queue":
            return await run_queue_command(args, settings)
    except TrackerError as e:
        print(f"Error: {e.message}")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


__all__ = [
    "apply_cli_overrides",
    "create_parser",
    "main_entry",
    "parse_date",
    "run_queue_command",
    "run_schedule_command",
    "run_status_command",
    "run_sync_command",
]
