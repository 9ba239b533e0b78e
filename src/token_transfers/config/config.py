# -*- coding: utf-8 -*-
"""Configuration loaded from environment via Pydantic Settings.

Nested env vars use <section>__<key>, e.g. LOGGING__CONSOLE_LEVEL, DATABASE__URL.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """General application configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    app_name: str = "token-transfers"
    service_name: Optional[str] = None
    service_version: Optional[str] = None
    environment: Literal["development", "test", "production"] = "development"


class LoggingSettings(BaseSettings):
    """Structured logging configuration for structlog/stdlib/Logfire."""

    model_config = SettingsConfigDict(extra="ignore")

    # Per-target levels (only the 5 standard levels)
    console_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    logfire_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Local outputs
    log_to_console: bool = True
    log_to_file: bool = False
    log_file_path: str = "logs/token_transfers.log"
    # TimedRotatingFileHandler: when to rotate (S/M/H/D/W0–W6/midnight), interval, backups to keep
    log_file_when: Literal[
        "S", "M", "H", "D", "W0", "W1", "W2", "W3", "W4", "W5", "W6", "midnight"
    ] = "midnight"
    log_file_interval: int = 1
    log_file_backup_count: int = 30
    log_file_utc: bool = True

    # Main output format: JSONRenderer if True, ConsoleRenderer if False
    json_format: bool = False

    # Logfire integration via structlog
    logfire_enabled: bool = False
    logfire_token: Optional[str] = None


class EventBusSettings(BaseSettings):
    """In-process bubus event bus."""

    model_config = SettingsConfigDict(extra="ignore")

    name: str = Field(default="TokenTransfers", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    max_history_size: int = Field(default=100, ge=1)


class DatabaseSettings(BaseSettings):
    """SQL store used when repository.backend is 'sql'."""

    model_config = SettingsConfigDict(extra="ignore")

    url: str = Field(
        default="sqlite:///data/token_transfers.db",
        description="SQLAlchemy database URL.",
    )
    echo: bool = Field(default=False, description="Log emitted SQL.")
    auto_create_schema: bool = Field(
        default=True,
        description="Create missing tables on startup.",
    )


class RepositorySettings(BaseSettings):
    """Transfer attempt repository behaviour."""

    model_config = SettingsConfigDict(extra="ignore")

    backend: Literal["memory", "sql"] = "memory"
    default_per_page: int = Field(default=50, ge=1, le=1000)
    max_per_page: int = Field(default=200, ge=1, le=1000)
    allow_delete: bool = Field(
        default=True,
        description="Enable administrative delete/reset. Disable in production.",
    )
    create_attempt_max_retries: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Allocation tries before create_attempt raises a conflict.",
    )

    @model_validator(mode="after")
    def _check_page_bounds(self) -> RepositorySettings:
        if self.default_per_page > self.max_per_page:
            raise ValueError("default_per_page must not exceed max_per_page")
        return self


class Settings(BaseSettings):
    """Root application configuration.

    Groups all sub-configurations so the rest of the code does not
    read environment variables directly. Nested overrides use
    <section>__<key>, e.g. REPOSITORY__BACKEND=sql, DATABASE__URL=...
    """

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    repository: RepositorySettings = Field(default_factory=RepositorySettings)
    events: EventBusSettings = Field(default_factory=EventBusSettings)

    @classmethod
    def from_env(cls, **overrides: Any) -> Settings:
        """Build settings from environment (and .env), with optional overrides.

        Nested overrides can be passed as nested dicts, e.g.:
        - from_env(repository={"backend": "sql"})

        Returns:
            A new Settings instance.
        """
        return cls(**overrides)


@lru_cache
def get_settings() -> Settings:
    """Return a single cached instance of Settings.

    Typical usage:

        from token_transfers.config import get_settings

        settings = get_settings()
        backend = settings.repository.backend
    """
    return Settings()
