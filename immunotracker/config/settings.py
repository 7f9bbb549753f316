"""Settings management using Pydantic for type validation and configuration."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "IMMUNOTRACKER_"

DEFAULT_PRECACHE_ASSETS = [
    "/",
    "/index.html",
    "/manifest.json",
    "/icon-72x72.png",
    "/icon-192x192.png",
    "/icon-512x512.png",
]

DEFAULT_STATS_ENDPOINTS = [
    "/api/stats/summary",
    "/api/stats/coverage",
    "/api/stats/alerts",
]


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    # Console Logging
    console_enabled: bool = Field(default=True, description="Enable console logging")
    console_level: str = Field(
        default="INFO",
        description="Console log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    console_colors: bool = Field(
        default=True, description="Enable colored console output (auto-detected)"
    )

    # File Logging
    file_enabled: bool = Field(default=False, description="Enable file logging")
    file_level: str = Field(default="DEBUG", description="File log level")
    file_directory: Optional[str] = Field(
        default=None, description="Custom log directory (defaults to data_dir/logs)"
    )
    file_prefix: str = Field(default="immunotracker", description="Log file prefix")
    max_log_files: int = Field(default=5, description="Maximum number of log files to keep")
    include_function_names: bool = Field(
        default=True, description="Include function names and line numbers in file logs"
    )

    # Third-party Libraries
    third_party_level: str = Field(
        default="WARNING", description="Log level for third-party libraries"
    )


class TrackerSettings(BaseSettings):
    """Application settings with environment variable support."""

    _explicit_args: set = PrivateAttr(default_factory=set)
    _env_vars_set: set = PrivateAttr(default_factory=set)

    # Application
    app_name: str = Field(default="immunisation-tracker", description="Application name")
    app_version: str = Field(default="3.0.0", description="Running application version")

    # Origin and backend surface
    origin: str = Field(
        default="http://localhost:8000", description="Origin the application shell is served from"
    )
    api_base_url: str = Field(
        default="http://localhost:8000/api", description="Base URL for backend API writes"
    )
    api_path_markers: list[str] = Field(
        default_factory=lambda: ["/api/"], description="Path fragments identifying API requests"
    )
    backend_hosts: list[str] = Field(
        default_factory=lambda: ["firebaseio.com", "firestore.googleapis.com"],
        description="Hosts whose requests are treated as backend API calls",
    )

    # Cache tiers
    static_cache_prefix: str = Field(
        default="immunisation-tracker", description="Static tier name prefix"
    )
    api_cache_name: str = Field(default="api-cache-v1", description="API-response tier name")
    offline_cache_name: str = Field(
        default="offline-data-v1", description="Offline-snapshot tier name"
    )
    precache_assets: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRECACHE_ASSETS),
        description="Application shell assets cached on install",
    )
    shell_url: str = Field(default="/index.html", description="Application shell document")

    # Sync
    stats_endpoints: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STATS_ENDPOINTS),
        description="Aggregate-statistics endpoints refreshed periodically",
    )
    version_url: str = Field(default="/version.json", description="Deployed version marker")
    periodic_sync_interval: int = Field(
        default=24 * 60 * 60, description="Periodic maintenance interval in seconds (24 hours)"
    )

    # Network
    request_timeout: int = Field(default=30, description="HTTP request timeout in seconds")

    # File Paths
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config" / "immunotracker"
    )
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "immunotracker"
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings, description="Logging settings"
    )

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **kwargs: Any) -> None:
        env_vars_set = {
            key[len(ENV_PREFIX) :].lower() for key in os.environ if key.startswith(ENV_PREFIX)
        }

        super().__init__(**kwargs)

        self._explicit_args = set(kwargs.keys())
        self._env_vars_set = env_vars_set

        self._load_yaml_config()

    def _find_config_file(self) -> Optional[Path]:
        """Find config file, checking project directory first, then user config dir."""
        project_root = Path(__file__).parent.parent.parent
        project_config = project_root / "config" / "config.yaml"
        if project_config.exists():
            return project_config

        user_config = self.config_dir / "config.yaml"
        if user_config.exists():
            return user_config

        return None

    def _can_override(self, setting: str) -> bool:
        return setting not in self._explicit_args and setting not in self._env_vars_set

    def _load_basic_settings(self, config_data: dict) -> None:
        """Load top-level application settings from YAML data."""
        basic_settings = [
            "app_name",
            "app_version",
            "origin",
            "api_base_url",
            "request_timeout",
            "periodic_sync_interval",
        ]
        for setting in basic_settings:
            if setting in config_data and self._can_override(setting):
                setattr(self, setting, config_data[setting])

    def _load_cache_config(self, config_data: dict) -> None:
        """Load cache tier configuration from YAML data."""
        if "cache" not in config_data:
            return

        cache_config = config_data["cache"]
        cache_settings = [
            "static_cache_prefix",
            "api_cache_name",
            "offline_cache_name",
            "precache_assets",
            "shell_url",
        ]
        for setting in cache_settings:
            if setting in cache_config and self._can_override(setting):
                setattr(self, setting, cache_config[setting])

    def _load_backend_config(self, config_data: dict) -> None:
        """Load backend surface and sync endpoints from YAML data."""
        if "backend" not in config_data:
            return

        backend_config = config_data["backend"]
        backend_settings = ["api_path_markers", "backend_hosts", "stats_endpoints", "version_url"]
        for setting in backend_settings:
            if setting in backend_config and self._can_override(setting):
                setattr(self, setting, backend_config[setting])

    def _load_logging_config(self, config_data: dict) -> None:
        """Load logging configuration from YAML data."""
        if "logging" not in config_data:
            return

        logging_config = config_data["logging"]
        for setting in LoggingSettings.model_fields:
            if setting in logging_config:
                setattr(self.logging, setting, logging_config[setting])

    def _load_yaml_config(self) -> None:
        """Load configuration from YAML file if it exists."""
        config_file = self._find_config_file()
        if not config_file:
            return

        try:
            with config_file.open() as f:
                config_data = yaml.safe_load(f)

            if not config_data:
                return

            self._load_basic_settings(config_data)
            self._load_cache_config(config_data)
            self._load_backend_config(config_data)
            self._load_logging_config(config_data)

        except (OSError, yaml.YAMLError) as e:
            # Defaults and environment variables still apply
            logging.getLogger(__name__).warning(
                f"Could not load YAML config from {config_file}: {e}"
            )

    @property
    def static_cache_name(self) -> str:
        """Versioned static-asset tier name for the running generation."""
        return f"{self.static_cache_prefix}-v{self.app_version}"

    @property
    def cache_tier_names(self) -> tuple[str, str, str]:
        """All tier names belonging to the current generation."""
        return (self.static_cache_name, self.api_cache_name, self.offline_cache_name)

    @property
    def database_file(self) -> Path:
        """Path to the offline store database."""
        return self.data_dir / "offline_store.db"

    @property
    def cache_file(self) -> Path:
        """Path to the cache tier database."""
        return self.data_dir / "cache_tiers.db"

    @property
    def config_file(self) -> Path:
        """Path to YAML configuration file."""
        return self.config_dir / "config.yaml"


_settings_instance: Optional[TrackerSettings] = None


def get_settings() -> TrackerSettings:
    """Get the global settings instance, creating it lazily if needed."""
    if globals()["_settings_instance"] is None:
        globals()["_settings_instance"] = TrackerSettings()
    return globals()["_settings_instance"]


def reset_settings() -> None:
    """Reset the global settings instance (primarily for testing)."""
    globals()["_settings_instance"] = None
