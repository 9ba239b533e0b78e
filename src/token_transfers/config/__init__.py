"""Configuration subpackage."""

from token_transfers.config.config import (
    AppSettings,
    DatabaseSettings,
    EventBusSettings,
    LoggingSettings,
    RepositorySettings,
    Settings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "EventBusSettings",
    "LoggingSettings",
    "RepositorySettings",
    "Settings",
    "get_settings",
]
