"""Pydantic models for sessionvault configuration.

Classes:
    StorageConfig: Document store connection
    BackupConfig: What is backed up, how often, and how it is chunked
    RecoveryConfig: Reconnect and health-check timing
    SessionVaultConfig: Top-level configuration combining all sections
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from sessionvault.core.session_id import DEFAULT_SESSION_ID, is_placeholder
from sessionvault.observability.logging import LoggingConfig

MIB = 1024 * 1024


class StorageConfig(BaseModel, frozen=True):
    """Document store configuration.

    Attributes:
        database_url: SQLAlchemy async URL. None means a SQLite file in the
            config directory. SESSIONVAULT_DATABASE_URL overrides it.
    """

    database_url: str | None = None


class BackupConfig(BaseModel, frozen=True):
    """Session backup configuration.

    Attributes:
        session_id: Identifier the session is stored under
        session_dir: Directory the connection client keeps its session in
        interval_seconds: Seconds between periodic backups
        max_chunk_size: Largest payload written to a single chunk record
        chunk_threshold: Archives larger than this are stored in chunks
        exclude_patterns: Glob patterns (relative paths) left out of archives
        failure_alert_threshold: Consecutive failed saves before each further
            failure is logged at error level
    """

    session_id: str = DEFAULT_SESSION_ID
    session_dir: Path = Path("session")
    interval_seconds: float = Field(default=300, gt=0)
    max_chunk_size: int = Field(default=10 * MIB, ge=1)
    chunk_threshold: int = Field(default=15 * MIB, ge=1)
    exclude_patterns: list[str] = Field(default_factory=list)
    failure_alert_threshold: int = Field(default=3, ge=1)

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        """Reject placeholder identifiers such as "undefined"."""
        if is_placeholder(v):
            msg = f"session_id must name a real session, got {v!r}"
            raise ValueError(msg)
        return v.strip()

    @field_validator("session_dir")
    @classmethod
    def expand_session_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @model_validator(mode="after")
    def validate_chunking(self) -> "BackupConfig":
        """Chunking only kicks in above a threshold larger than one chunk."""
        if self.chunk_threshold <= self.max_chunk_size:
            msg = (
                f"chunk_threshold ({self.chunk_threshold}) must be greater than "
                f"max_chunk_size ({self.max_chunk_size})"
            )
            raise ValueError(msg)
        return self


class RecoveryConfig(BaseModel, frozen=True):
    """Recovery orchestrator configuration.

    Attributes:
        ready_grace_seconds: Delay after "ready" before the first backup
        health_check_interval_seconds: Seconds between health checks
        reconnect_delay_seconds: Delay before re-initializing a disconnected client
        min_session_entries: Fewer top-level entries than this in the session
            directory triggers an advisory warning
    """

    ready_grace_seconds: float = Field(default=10, ge=0)
    health_check_interval_seconds: float = Field(default=60, gt=0)
    reconnect_delay_seconds: float = Field(default=5, ge=0)
    min_session_entries: int = Field(default=3, ge=0)


class SessionVaultConfig(BaseModel, frozen=True):
    """Top-level sessionvault configuration.

    Validates against config.yaml in ~/.sessionvault/.

    Attributes:
        storage: Document store configuration
        backup: Session backup configuration
        recovery: Recovery orchestrator configuration
        logging: Logging configuration
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def validate_health_interval(self) -> "SessionVaultConfig":
        """The health check must run more often than the backup."""
        if self.recovery.health_check_interval_seconds >= self.backup.interval_seconds:
            msg = (
                "recovery.health_check_interval_seconds "
                f"({self.recovery.health_check_interval_seconds}) must be shorter than "
                f"backup.interval_seconds ({self.backup.interval_seconds})"
            )
            raise ValueError(msg)
        return self


def get_default_config() -> SessionVaultConfig:
    """Return the default configuration."""
    return SessionVaultConfig()


def get_config_dir() -> Path:
    """Return ~/.sessionvault/."""
    return Path.home() / ".sessionvault"
