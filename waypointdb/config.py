"""Configuration management for WaypointDB.

This module provides centralized configuration using Pydantic Settings,
loaded from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, SQLite storage, human-readable logs
    - PRODUCTION: INFO logging, JSON logs, SQLite storage
    - TESTING: In-memory storage, minimal logging, no log files
    - STAGING: Production-like with INFO logging

Example:
    >>> from waypointdb.config import settings, Environment
    >>> print(settings.storage_key_prefix)
    waypoint:
    >>> if settings.is_testing:
    ...     print("Using in-memory storage")
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, SQLite storage
        PRODUCTION: Structured logs, SQLite storage
        TESTING: In-memory storage, minimal logging
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class StorageBackendKind(StrEnum):
    """Persistent medium used by the store."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        environment: Runtime profile
        data_dir: Base directory for the database, backups and log files
        storage_backend: Persistent medium (sqlite or memory)
        database_path: SQLite file backing the key-value store
        storage_key_prefix: Prefix for every bucket key
        storage_quota_bytes: Maximum total bytes held by the store (0 = unlimited)
        default_daily_baseline: Baseline points granted per day
        autolink_warn_ms: Auto-link lookups slower than this are logged as warnings
        metrics_enabled: Record Prometheus metrics
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for all data files (database, backups, logs)",
    )

    # Storage Configuration
    storage_backend: StorageBackendKind = Field(
        default=StorageBackendKind.SQLITE,
        description="Persistent medium for the key-value buckets",
    )
    database_path: Path = Field(
        Path("waypoint.db"),  # Will be updated to data_dir/waypoint.db by validator
        description="Path to SQLite database file (defaults to data_dir/waypoint.db)",
    )
    storage_key_prefix: str = Field(
        "waypoint:",
        min_length=1,
        description="Prefix applied to every bucket key",
    )
    storage_quota_bytes: int = Field(
        5 * 1024 * 1024,
        ge=0,
        description="Maximum bytes the store may hold across all keys (0 disables the check)",
    )

    # Points Configuration
    default_daily_baseline: int = Field(
        10,
        ge=0,
        description="Baseline points granted for each tracked day",
    )

    # Auto-link Configuration
    autolink_warn_ms: float = Field(
        50.0,
        gt=0,
        description="Auto-link lookups slower than this many milliseconds are logged",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    # Observability
    metrics_enabled: bool = Field(
        default=True,
        description="Record Prometheus metrics for store and migration activity",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def set_database_path_default(self) -> "Settings":
        """Set database_path to data_dir/waypoint.db if not explicitly provided."""
        if self.database_path == Path("waypoint.db"):
            self.database_path = self.data_dir / "waypoint.db"
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging (unless stricter), JSON logs
            - DEVELOPMENT: DEBUG logging, human-readable logs
            - TESTING: In-memory storage, ERROR logging, no file logging
            - STAGING: INFO logging, JSON logs

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level in {"TRACE", "DEBUG"}:
                self.log_level = "INFO"
            self.log_json = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.storage_backend = StorageBackendKind.MEMORY
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True

        return self

    @property
    def backup_dir(self) -> Path:
        """Get backup directory path."""
        backup_path = self.data_dir / "backups"
        backup_path.mkdir(parents=True, exist_ok=True)
        return backup_path

    @property
    def database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        """Check if running in staging environment."""
        return self.environment == Environment.STAGING

    @property
    def quota_enabled(self) -> bool:
        """Check if the storage quota is enforced."""
        return self.storage_quota_bytes > 0


def get_settings(**overrides: object) -> Settings:
    """Get a settings instance.

    Args:
        **overrides: Field values taking precedence over the environment

    Returns:
        Configured Settings instance
    """
    return Settings(**overrides)  # type: ignore[arg-type]


# Global settings instance
settings = get_settings()
