"""Command-line overrides for application settings."""

import logging
from typing import Any


def _apply_logging_overrides(settings: Any, args: Any, logger: logging.Logger) -> None:
    log_settings = settings.logging

    if getattr(args, "log_level", None):
        log_settings.console_level = args.log_level
        log_settings.file_level = args.log_level
        logger.debug(f"Log level set to {args.log_level}")

    if getattr(args, "verbose", False):
        log_settings.console_level = "VERBOSE"

    if getattr(args, "quiet", False):
        log_settings.console_level = "ERROR"

    if getattr(args, "log_dir", None):
        log_settings.file_enabled = True
        log_settings.file_directory = str(args.log_dir)

    if getattr(args, "no_log_colors", False):
        log_settings.console_colors = False


def _apply_path_overrides(settings: Any, args: Any, logger: logging.Logger) -> None:
    if getattr(args, "data_dir", None):
        settings.data_dir = args.data_dir
        logger.debug(f"Data directory set to {args.data_dir}")

    if getattr(args, "origin", None):
        settings.origin = args.origin
        logger.debug(f"Origin set to {args.origin}")


def apply_cli_overrides(settings: Any, args: Any) -> Any:
    """Apply command-line overrides to settings.

    Args:
        settings: Current settings object
        args: Parsed command line arguments

    Returns:
        Updated settings object
    """
    logger = logging.getLogger("immunotracker.cli.config")
    _apply_logging_overrides(settings, args, logger)
    _apply_path_overrides(settings, args, logger)
    return settings


__all__ = ["apply_cli_overrides"]
