"""Centralized configuration for aquacycle.

Loads configuration from a .env file, the environment or a YAML file and
provides typed access to settings. Invalid values produce a ConfigError
naming the offending variable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from ..core.errors import AquacycleError
from ..core.time import resolve_timezone

if TYPE_CHECKING:
    from ..pipelines.sensor_series_pipeline import SensorSeriesConfig

__all__ = [
    "ConfigError",
    "Settings",
    "generate_example_env",
    "get_settings",
    "load_env_file",
    "load_settings",
]

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class ConfigError(AquacycleError):
    """Raised when configuration is missing or invalid."""

    pass


@dataclass
class Settings:
    """Centralized settings for aquacycle.

    Attributes
    ----------
    store_url : str
        Base URL of the readings API
    timezone : str
        Timezone of process dates and of ``fecha``/``hora`` readings
    concurrency_limit : int
        Maximum parallel sensor fetches
    target_points : int
        Chart rendering budget (points per series)
    page_size : int
        Readings per page requested from the store
    fetch_timeout : float
        Per-sensor fetch timeout in seconds
    max_pages : int
        Page limit per sensor fetch
    max_sensors : int
        Maximum sensors per series request
    log_level : str
        Logging level
    log_dir : Path | None
        Directory for JSONL logs (console only if not set)
    """

    store_url: str = "http://localhost:3001"
    timezone: str = "UTC"

    # Series pipeline
    concurrency_limit: int = 3
    target_points: int = 100
    page_size: int = 500
    fetch_timeout: float = 15.0
    max_pages: int = 200
    max_sensors: int = 20

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.log_dir and isinstance(self.log_dir, str):
            self.log_dir = Path(self.log_dir)

        if not self.store_url:
            raise ConfigError("AQUACYCLE_STORE_URL cannot be empty (e.g., AQUACYCLE_STORE_URL=http://localhost:3001)")

        try:
            resolve_timezone(self.timezone)
        except ValueError as exc:
            raise ConfigError(f"AQUACYCLE_TIMEZONE is not a known timezone: {self.timezone}") from exc

        for name, env_var in (
            ("concurrency_limit", "AQUACYCLE_CONCURRENCY"),
            ("target_points", "AQUACYCLE_TARGET_POINTS"),
            ("page_size", "AQUACYCLE_PAGE_SIZE"),
            ("max_pages", "AQUACYCLE_MAX_PAGES"),
            ("max_sensors", "AQUACYCLE_MAX_SENSORS"),
        ):
            if getattr(self, name) < 1:
                raise ConfigError(f"{env_var} must be at least 1, got {getattr(self, name)}")

        if self.fetch_timeout <= 0:
            raise ConfigError(f"AQUACYCLE_FETCH_TIMEOUT must be positive, got {self.fetch_timeout}")

        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"AQUACYCLE_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {self.log_level}")

    @classmethod
    def from_env(cls, env_file: Path | str | None = None) -> Settings:
        """Load settings from environment.

        Loads from .env file if present, otherwise from os.environ.

        Parameters
        ----------
        env_file
            Path to .env file (default: .env in current directory)

        Raises
        ------
        ConfigError
            If settings are invalid
        """
        if env_file is None:
            env_file = Path(".env")

        if isinstance(env_file, str):
            env_file = Path(env_file)

        if env_file.exists():
            load_env_file(env_file)

        try:
            return cls(
                store_url=os.environ.get("AQUACYCLE_STORE_URL", "http://localhost:3001"),
                timezone=os.environ.get("AQUACYCLE_TIMEZONE", "UTC"),
                concurrency_limit=int(os.environ.get("AQUACYCLE_CONCURRENCY", "3")),
                target_points=int(os.environ.get("AQUACYCLE_TARGET_POINTS", "100")),
                page_size=int(os.environ.get("AQUACYCLE_PAGE_SIZE", "500")),
                fetch_timeout=float(os.environ.get("AQUACYCLE_FETCH_TIMEOUT", "15.0")),
                max_pages=int(os.environ.get("AQUACYCLE_MAX_PAGES", "200")),
                max_sensors=int(os.environ.get("AQUACYCLE_MAX_SENSORS", "20")),
                log_level=os.environ.get("AQUACYCLE_LOG_LEVEL", "INFO"),
                log_dir=Path(os.environ["AQUACYCLE_LOG_DIR"]) if os.environ.get("AQUACYCLE_LOG_DIR") else None,
            )
        except (ValueError, KeyError) as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: Path | str) -> Settings:
        """Load settings from a YAML mapping of field names to values.

        Raises
        ------
        ConfigError
            If the file is missing, unparsable, or holds unknown keys
        """
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")

        try:
            return cls(**data)
        except TypeError as exc:
            raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    def pipeline_config(self) -> SensorSeriesConfig:
        """Sensor series pipeline configuration from these settings."""
        from ..pipelines.sensor_series_pipeline import SensorSeriesConfig

        return SensorSeriesConfig(
            concurrency_limit=self.concurrency_limit,
            target_points=self.target_points,
            page_size=self.page_size,
            fetch_timeout_seconds=self.fetch_timeout,
            max_pages=self.max_pages,
            max_sensors=self.max_sensors,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["log_dir"] = str(self.log_dir) if self.log_dir else None
        return data


def load_env_file(env_file: Path) -> None:
    """Load environment variables from .env file.

    Parameters
    ----------
    env_file
        Path to .env file
    """
    with open(env_file, encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            # Skip comments and empty lines
            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip()

                if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                    value = value[1:-1]

                os.environ[key] = value


# Global settings instance
_settings: Settings | None = None


def load_settings(env_file: Path | str | None = None) -> Settings:
    """Load settings from environment and keep them as the current settings.

    Raises
    ------
    ConfigError
        If settings are invalid
    """
    global _settings
    _settings = Settings.from_env(env_file)
    return _settings


def get_settings() -> Settings:
    """Get current settings.

    Raises
    ------
    ConfigError
        If settings not loaded
    """
    if _settings is None:
        raise ConfigError("Settings not loaded. Call load_settings() first.")
    return _settings


def generate_example_env(output_path: Path | None = None) -> str:
    """Generate example .env file with all settings.

    Parameters
    ----------
    output_path
        Optional path to write .env file

    Returns
    -------
    str
        Example .env contents
    """
    example = """# aquacycle configuration
# Copy this to .env and adjust values

# ====================
# Reading store
# ====================

# Base URL of the readings API (optional, default: http://localhost:3001)
AQUACYCLE_STORE_URL=http://localhost:3001

# Timezone of process dates and local reading times (optional, default: UTC)
# Examples: UTC, America/Mexico_City, America/Hermosillo
AQUACYCLE_TIMEZONE=UTC

# ====================
# Series pipeline
# ====================

# Maximum parallel sensor fetches (optional, default: 3)
AQUACYCLE_CONCURRENCY=3

# Points per chart series (optional, default: 100)
AQUACYCLE_TARGET_POINTS=100

# Readings per page (optional, default: 500)
AQUACYCLE_PAGE_SIZE=500

# Per-sensor fetch timeout in seconds (optional, default: 15)
AQUACYCLE_FETCH_TIMEOUT=15.0

# Page limit per sensor fetch (optional, default: 200)
AQUACYCLE_MAX_PAGES=200

# Sensors per request (optional, default: 20)
AQUACYCLE_MAX_SENSORS=20

# ====================
# Logging
# ====================

# Log level (optional, default: INFO)
# Options: DEBUG, INFO, WARNING, ERROR, CRITICAL
AQUACYCLE_LOG_LEVEL=INFO

# JSONL log directory (optional, console only if not set)
# AQUACYCLE_LOG_DIR=logs
"""

    if output_path:
        output_path.write_text(example, encoding="utf-8")

    return example
