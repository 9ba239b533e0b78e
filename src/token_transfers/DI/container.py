# -*- coding: utf-8 -*-
"""Dependency injection container (dependency-injector)."""

from __future__ import annotations

from dependency_injector import containers, providers

from token_transfers.config import Settings, get_settings
from token_transfers.events.bus import get_event_bus
from token_transfers.persistence.repositories.in_memory import InMemoryTransferAttemptRepository
from token_transfers.persistence.repositories.interfaces import ITransferAttemptRepository
from token_transfers.persistence.repositories.sql import SessionProvider, SqlTransferAttemptRepository
from token_transfers.services.transfer_lifecycle import TransferLifecycleService


def _build_transfer_repository(settings: Settings) -> ITransferAttemptRepository:
    """Build the attempt repository for settings.repository.backend."""
    repo_settings = settings.repository
    if repo_settings.backend == "sql":
        return SqlTransferAttemptRepository(
            SessionProvider(settings.database.url, echo=settings.database.echo),
            auto_create_schema=settings.database.auto_create_schema,
            default_per_page=repo_settings.default_per_page,
            max_per_page=repo_settings.max_per_page,
            allow_delete=repo_settings.allow_delete,
            max_create_retries=repo_settings.create_attempt_max_retries,
        )
    return InMemoryTransferAttemptRepository(
        default_per_page=repo_settings.default_per_page,
        max_per_page=repo_settings.max_per_page,
        allow_delete=repo_settings.allow_delete,
    )


class Container(containers.DeclarativeContainer):
    """Application container. Wires settings, attempt repository, event bus and lifecycle service."""

    config = providers.Callable(get_settings)

    event_bus = providers.Callable(get_event_bus, config)

    transfer_repository = providers.Singleton(_build_transfer_repository, config)

    transfer_lifecycle_service = providers.Singleton(
        TransferLifecycleService,
        repository=transfer_repository,
        event_bus=event_bus,
    )
