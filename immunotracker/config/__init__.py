"""Configuration package."""

from .settings import LoggingSettings, TrackerSettings, get_settings, reset_settings

__all__ = ["LoggingSettings", "TrackerSettings", "get_settings", "reset_settings"]
