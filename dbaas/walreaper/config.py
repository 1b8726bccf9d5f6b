"""
Configuration management for walreaper.

All configuration is done via environment variables, with CLI flags able to
override the common ones. This module provides typed configuration classes
with validation.

Invariants:
    - The only baked-in policy default is the 10 day retention threshold
    - WAL_DIR must be given explicitly; there is no guessed data directory
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Never add a default that widens what can be deleted
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta

from .segments.naming import STATUS_SUBDIR

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=10)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
    "": "days",
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as "10d", "36h", "90m", "600s" or "7".

    A bare number is a number of days.

    Raises:
        ValueError: If the value cannot be parsed
    """
    match = _DURATION_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid duration '{value}'. Use e.g. 10d, 36h, 90m, 600s")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit.lower()]: float(amount)})


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection configuration.

    Attributes:
        dsn: libpq connection string or URL; overrides the individual parts
        host: Server host or socket directory
        port: Server port
        user: Role name (needs checkpoint and pg_switch_wal privileges)
        password: Role password
        dbname: Database to connect to
        connect_timeout: Connect timeout in seconds
        application_name: Name shown in pg_stat_activity
    """

    dsn: str | None = None
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str | None = None
    dbname: str = "postgres"
    connect_timeout: int = 10
    application_name: str = "walreaper"

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Load configuration from environment variables."""
        return cls(
            dsn=os.getenv("DATABASE_URL"),
            host=os.getenv("PGHOST", "localhost"),
            port=int(os.getenv("PGPORT", "5432")),
            user=os.getenv("PGUSER", "postgres"),
            password=os.getenv("PGPASSWORD"),
            dbname=os.getenv("PGDATABASE", "postgres"),
            connect_timeout=int(os.getenv("PG_CONNECT_TIMEOUT", "10")),
            application_name=os.getenv("PG_APPLICATION_NAME", "walreaper"),
        )


@dataclass(frozen=True)
class RetentionConfig:
    """WAL retention configuration.

    Attributes:
        wal_dir: PostgreSQL pg_wal directory
        status_subdir: Archive status subdirectory name
        threshold: Minimum age before an archived segment may be deleted
        dry_run: Report what would be deleted without deleting
        sweep_enabled: Whether stale markers and backup labels are swept
        cycle_timeout_seconds: Bound on one cycle (0 = none)
    """

    wal_dir: str = ""
    status_subdir: str = STATUS_SUBDIR
    threshold: timedelta = DEFAULT_RETENTION
    dry_run: bool = False
    sweep_enabled: bool = True
    cycle_timeout_seconds: float = 0.0

    @classmethod
    def from_env(cls, threshold: timedelta | None = None) -> RetentionConfig:
        """Load configuration from environment variables.

        Args:
            threshold: Retention threshold to use instead of WAL_RETENTION,
                which is then not parsed at all
        """
        if threshold is None:
            threshold = parse_duration(os.getenv("WAL_RETENTION", "10d"))
        return cls(
            wal_dir=os.getenv("WAL_DIR", ""),
            status_subdir=os.getenv("WAL_STATUS_SUBDIR", STATUS_SUBDIR),
            threshold=threshold,
            dry_run=_env_bool("WAL_DRY_RUN", "false"),
            sweep_enabled=_env_bool("WAL_SWEEP_ENABLED", "true"),
            cycle_timeout_seconds=float(os.getenv("CYCLE_TIMEOUT_SECONDS", "0")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ReaperConfig:
    """Complete walreaper configuration.

    Attributes:
        database: PostgreSQL connection configuration
        retention: WAL retention configuration
        observability: Logging configuration
    """

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ReaperConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            database=DatabaseConfig.from_env(),
            retention=RetentionConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.retention.wal_dir:
            raise ValueError("WAL_DIR is required")
        if self.retention.threshold <= timedelta(0):
            raise ValueError("WAL_RETENTION must be positive")
        if self.retention.cycle_timeout_seconds < 0:
            raise ValueError("CYCLE_TIMEOUT_SECONDS must not be negative")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not os.path.isdir(self.retention.wal_dir):
            logger.warning(f"WAL directory does not exist: {self.retention.wal_dir}")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Reaper configuration loaded",
            extra={
                "wal_dir": self.retention.wal_dir,
                "status_subdir": self.retention.status_subdir,
                "retention_seconds": self.retention.threshold.total_seconds(),
                "dry_run": self.retention.dry_run,
                "sweep_enabled": self.retention.sweep_enabled,
                "db_host": None if self.database.dsn else self.database.host,
                "db_port": None if self.database.dsn else self.database.port,
                "db_user": None if self.database.dsn else self.database.user,
                "db_dsn_set": self.database.dsn is not None,
                "log_level": self.observability.log_level,
            },
        )
