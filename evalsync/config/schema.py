# EVALSYNC Configuration Schema
# Pydantic models for YAML configuration validation

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class SessionInvalidPolicy(str, Enum):
    """What happens to pending items when the active session becomes invalid."""

    FREEZE = "freeze"
    FAIL = "fail"


class RemoteConfig(BaseModel):
    """Remote API settings used for replay."""

    base_url: str = Field(default="https://api.instorm.io", description="Base URL of the remote API")
    evaluation_endpoint: str = Field(default="/evaluations", description="Endpoint for evaluation submissions")
    timeout: float = Field(default=30.0, gt=0, description="Transport timeout in seconds")
    idempotency_header: str = Field(
        default="Idempotency-Key", description="Header carrying the mutation id on every replay"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL."""
        return v.rstrip("/")


class StorageConfig(BaseModel):
    """Local durable storage settings."""

    directory: str = Field(default="~/.local/share/evalsync", description="Directory for queue state files")
    queue_file: str = Field(default="queue.yaml", description="File holding queued mutations")
    connectivity_file: str = Field(default="connectivity.yaml", description="File holding connectivity state")
    max_items: int | None = Field(default=None, ge=1, description="Queue quota. None = limited by disk only.")
    quarantine_corrupt: bool = Field(
        default=False, description="Move an unparseable queue file aside instead of overwriting it"
    )

    @field_validator("directory")
    @classmethod
    def expand_directory(cls, v: str) -> str:
        """Expand ~ in path."""
        return str(Path(v).expanduser())

    @property
    def queue_path(self) -> Path:
        return Path(self.directory) / self.queue_file

    @property
    def connectivity_path(self) -> Path:
        return Path(self.directory) / self.connectivity_file


class CredentialConfig(BaseModel):
    """Credential handling settings."""

    token_file: str | None = Field(default=None, description="File holding the live bearer token")
    segment_count: int = Field(default=3, ge=1, description="Expected number of dot-separated token segments")
    on_session_invalid: SessionInvalidPolicy = Field(
        default=SessionInvalidPolicy.FREEZE, description="Policy for pending items when the session is invalid"
    )

    @field_validator("token_file")
    @classmethod
    def expand_token_file(cls, v: str | None) -> str | None:
        """Expand ~ in optional path."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class ReplayConfig(BaseModel):
    """Deferred replay settings."""

    delay_seconds: float = Field(default=30.0, ge=0, description="Delay before a deferred replay attempt")


class NotificationConfig(BaseModel):
    """User-facing notification settings."""

    enabled: bool = Field(default=True, description="Show notifications for terminal outcomes")
    notify_on_offline: bool = Field(default=True, description="Show a notice when the client goes offline")


class OutputConfig(BaseModel):
    """Output and logging configuration."""

    verbose: bool = Field(default=False, description="Enable verbose output")
    colored: bool = Field(default=True, description="Enable colored output")
    log_level: str = Field(default="WARNING", description="Console log level")
    log_file: str | None = Field(default=None, description="Path to log file")

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_file")
    @classmethod
    def expand_optional_paths(cls, v: str | None) -> str | None:
        """Expand ~ in optional paths."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class EvalsyncConfig(BaseModel):
    """Root configuration model for EVALSYNC."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig, description="Remote API settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Local storage settings")
    credentials: CredentialConfig = Field(default_factory=CredentialConfig, description="Credential settings")
    replay: ReplayConfig = Field(default_factory=ReplayConfig, description="Deferred replay settings")
    notifications: NotificationConfig = Field(
        default_factory=NotificationConfig, description="Notification settings"
    )
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output settings")
