"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.constants import DatabaseURLSchemes, LogLevels
from ..domain.shared.messages import ErrorMessages


class DatabaseSettings(BaseModel):
    """Database configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="sqlite:///data/jukebox.db",
        validation_alias=AliasChoices("url", "database_url", "db_url"),
    )
    busy_timeout_ms: int = Field(
        default=5000,
        ge=1000,
        le=30000,
        validation_alias=AliasChoices("busy_timeout_ms", "busy_timeout"),
    )
    connection_timeout_s: int = Field(
        default=10,
        ge=1,
        le=60,
        validation_alias=AliasChoices("connection_timeout_s", "connection_timeout"),
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(DatabaseURLSchemes.SQLITE):
            raise ValueError(ErrorMessages.INVALID_DATABASE_URL)
        return v


class ResolverSettings(BaseModel):
    """Track resolution (yt-dlp) configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    timeout_seconds: float = Field(
        default=15.0,
        gt=0.0,
        le=120.0,
        validation_alias=AliasChoices("timeout_seconds", "timeout"),
    )
    ytdlp_format: str = "bestaudio/best"
    search_limit: int = Field(default=5, ge=1, le=25)
    socket_timeout_seconds: int = Field(default=10, ge=1, le=60)
    cache_ttl_seconds: int = Field(
        default=3600, ge=0, validation_alias=AliasChoices("cache_ttl_seconds", "cache_ttl")
    )


class QueueSettings(BaseModel):
    """Queue coordination configuration."""

    model_config = SettingsConfigDict(frozen=True)

    max_pending_per_user: int | None = Field(default=None, ge=1)
    reject_duplicates: bool = False
    submit_cooldown_seconds: float = Field(default=0.0, ge=0.0)
    history_limit: int = Field(default=10, ge=1, le=100)
    poll_interval_seconds: float = Field(default=1.0, ge=0.0)


class ChangeFeedSettings(BaseModel):
    """Change feed tail configuration."""

    model_config = SettingsConfigDict(frozen=True)

    poll_interval_seconds: float = Field(default=0.5, gt=0.0)
    batch_size: int = Field(default=500, ge=1, le=10000)
    retry_delay_seconds: float = Field(default=2.0, ge=0.0)


class AccessSettings(BaseModel):
    """Who may remove entries and skip songs."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    moderator_ids: tuple[str, ...] = Field(
        default_factory=tuple, validation_alias=AliasChoices("moderator_ids", "moderators")
    )
    allow_self_removal: bool = True
    open_room: bool = True

    @field_validator("moderator_ids", mode="before")
    @classmethod
    def normalize_moderator_ids(cls, v: tuple[str, ...] | list[str] | str) -> tuple[str, ...]:
        """Accept a list or comma-separated string; drop blanks."""
        if isinstance(v, str):
            v = v.split(",")
        return tuple(item.strip() for item in v if str(item).strip())


class CleanupSettings(BaseModel):
    """Change-log cleanup configuration."""

    model_config = SettingsConfigDict(frozen=True)

    change_retention_hours: int = Field(default=24, ge=1)
    cleanup_interval_minutes: int = Field(default=30, ge=1)


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DATABASE__URL, DATABASE__BUSY_TIMEOUT_MS, ... (nested with `__`)
    - QUEUE__MAX_PENDING_PER_USER, QUEUE__REJECT_DUPLICATES, ...
    - ACCESS__MODERATOR_IDS (JSON array, e.g. '["teacher-1"]')
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    change_feed: ChangeFeedSettings = Field(default_factory=ChangeFeedSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        v_upper = v.upper()
        if v_upper not in LogLevels.ALL:
            raise ValueError(
                ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=sorted(LogLevels.ALL))
            )
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
