# -*- coding: utf-8 -*-
"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from token_transfers.models.transfer_attempt import TransferAttempt
from token_transfers.persistence.repositories.in_memory.transfer_attempt_repository import (
    InMemoryTransferAttemptRepository,
)
from token_transfers.persistence.repositories.sql import (
    SessionProvider,
    SqlTransferAttemptRepository,
)

MINT_ADDRESS = "So11111111111111111111111111111111111111112"
FROM_ADDRESS = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
TO_ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


class FakeEventBus:
    """Minimal event bus fake for asserting dispatched events."""

    def __init__(self) -> None:
        self.dispatched: list[Any] = []

    def dispatch(self, event: Any) -> None:
        self.dispatched.append(event)


class StepClock:
    """Deterministic clock: returns start, then advances by step on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def product_id() -> str:
    """Default product used by tests."""
    return "P1"


@pytest.fixture
def now_utc() -> datetime:
    """Stable UTC timestamp for deterministic assertions."""
    return datetime(2026, 2, 13, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now_utc: datetime) -> StepClock:
    """Clock starting at now_utc, one second per call."""
    return StepClock(now_utc)


@pytest.fixture
def transfer_factory(product_id: str, now_utc: datetime) -> Callable[..., TransferAttempt]:
    """Build a requested draft with sensible defaults and easy overrides."""

    def _build(**overrides: Any) -> TransferAttempt:
        return TransferAttempt.create(
            product_id=overrides.pop("product_id", product_id),
            mint_address=overrides.pop("mint_address", MINT_ADDRESS),
            from_address=overrides.pop("from_address", FROM_ADDRESS),
            to_address=overrides.pop("to_address", TO_ADDRESS),
            requested_at=overrides.pop("requested_at", now_utc),
            **overrides,
        )

    return _build


@pytest.fixture
def memory_repo(clock: StepClock) -> InMemoryTransferAttemptRepository:
    """Fresh in-memory attempt repository per test."""
    return InMemoryTransferAttemptRepository(clock=clock, default_per_page=2, max_per_page=5)


@pytest.fixture
def session_provider(tmp_path: Path) -> Iterator[SessionProvider]:
    """SQLite file database in the test's tmp dir."""
    provider = SessionProvider(f"sqlite:///{tmp_path / 'transfers.db'}")
    yield provider
    provider.dispose()


@pytest.fixture
def sql_repo(session_provider: SessionProvider, clock: StepClock) -> SqlTransferAttemptRepository:
    """Fresh SQL attempt repository per test (schema created on init)."""
    return SqlTransferAttemptRepository(
        session_provider,
        clock=clock,
        default_per_page=2,
        max_per_page=5,
        max_create_retries=50,
    )


@pytest.fixture(params=["memory", "sql"])
def repo(
    request: pytest.FixtureRequest,
    memory_repo: InMemoryTransferAttemptRepository,
    sql_repo: SqlTransferAttemptRepository,
) -> Any:
    """Each repository implementation in turn, for contract tests."""
    return memory_repo if request.param == "memory" else sql_repo


@pytest.fixture
def event_bus() -> FakeEventBus:
    """Recording event bus."""
    return FakeEventBus()
