# -*- coding: utf-8 -*-
"""Abstract interface for transfer attempt storage (in-memory, SQL, etc.)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from token_transfers.exceptions import (
    InvalidTransitionError,
    TransferConflictError,
    TransferNotFoundError,
    TransferValidationError,
)
from token_transfers.models.query import Page, PageResult, TransferFilter, TransferSort
from token_transfers.models.transfer_attempt import (
    TransferAttempt,
    TransferAttemptPatch,
    TransferStatus,
    can_transition,
)


@dataclass(frozen=True, slots=True)
class SaveOptions:
    """Write options. expected_version makes the write conditional on the stored version."""

    expected_version: Optional[int] = None


class ITransferAttemptRepository(ABC):
    """Interface for persisting TransferAttempt keyed by (product_id, attempt).

    Read misses return None. Writes raise TransferNotFoundError for a missing
    record and TransferConflictError when a precondition or allocation race is lost.
    """

    @abstractmethod
    async def get_latest_by_product_id(self, product_id: str) -> Optional[TransferAttempt]:
        """Return the attempt with the highest number for product_id, or None."""
        ...

    @abstractmethod
    async def get_by_product_id_and_attempt(
        self,
        product_id: str,
        attempt: int,
    ) -> Optional[TransferAttempt]:
        """Return the exact attempt, or None if missing."""
        ...

    @abstractmethod
    async def list_by_product_id(self, product_id: str) -> list[TransferAttempt]:
        """Return the full history for product_id, ordered by attempt ascending."""
        ...

    @abstractmethod
    async def list(
        self,
        filter: TransferFilter | None = None,
        sort: TransferSort | None = None,
        page: Page | None = None,
    ) -> PageResult[TransferAttempt]:
        """Return one page of attempts matching filter, ordered by sort."""
        ...

    @abstractmethod
    async def count(self, filter: TransferFilter | None = None) -> int:
        """Return the number of attempts matching filter."""
        ...

    @abstractmethod
    async def create_attempt(self, draft: TransferAttempt) -> TransferAttempt:
        """Persist draft as the next attempt for its product and return the stored copy.

        The attempt number is max(existing) + 1 (1 for a new product); any number on
        the draft is ignored. Allocation is atomic against concurrent creates for the
        same product_id. The draft must be in status requested.

        Raises:
            TransferConflictError: The allocation race could not be won.
        """
        ...

    @abstractmethod
    async def save(
        self,
        transfer: TransferAttempt,
        options: SaveOptions | None = None,
    ) -> TransferAttempt:
        """Overwrite the stored (product_id, attempt) record; returns it with the bumped version.

        Raises:
            TransferNotFoundError: No such attempt.
            TransferConflictError: options.expected_version does not match.
            InvalidTransitionError: The stored status cannot move to the new one.
        """
        ...

    @abstractmethod
    async def delete(self, product_id: str, attempt: int) -> None:
        """Delete one attempt (administrative). Attempt numbers are never reused."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Delete every attempt (test/dev only)."""
        ...

    # -------------------------------------------------------------------------
    # Convenience: load, apply, conditional save
    # -------------------------------------------------------------------------

    async def patch(
        self,
        product_id: str,
        attempt: int,
        patch: TransferAttemptPatch,
        options: SaveOptions | None = None,
    ) -> TransferAttempt:
        """Apply patch to the stored attempt and save it as one conditional write.

        Without options.expected_version the loaded version is used, so a concurrent
        writer between load and save surfaces as TransferConflictError.
        """
        current = await self.get_by_product_id_and_attempt(product_id, attempt)
        if current is None:
            raise TransferNotFoundError(product_id, attempt)
        expected = (
            options.expected_version
            if options is not None and options.expected_version is not None
            else current.version
        )
        if patch.is_empty:
            if expected != current.version:
                raise TransferConflictError(
                    f"version mismatch for {current.product_id}#{current.attempt}",
                    product_id=current.product_id,
                    attempt=current.attempt,
                    expected_version=expected,
                    actual_version=current.version,
                )
            return current
        updated = current.apply_patch(patch)
        return await self.save(updated, SaveOptions(expected_version=expected))


def ensure_overwrite_allowed(stored: TransferAttempt, incoming: TransferAttempt) -> None:
    """Check that incoming may replace stored under the same key.

    requested_at is immutable, status only moves along the transition table, and a
    persisted error attempt is never turned back into requested: retries are new attempts.
    """
    if incoming.requested_at != stored.requested_at:
        raise TransferValidationError(
            "requested_at",
            "requested_at is immutable",
            value=incoming.requested_at,
        )
    if incoming.status == stored.status:
        return
    if stored.status == TransferStatus.ERROR and incoming.status == TransferStatus.REQUESTED:
        raise InvalidTransitionError(
            stored.status,
            incoming.status,
            "a failed attempt is permanent history; create a new attempt to retry",
        )
    if not can_transition(stored.status, incoming.status):
        raise InvalidTransitionError(stored.status, incoming.status)


def ensure_creatable(draft: TransferAttempt) -> None:
    """New attempts always start in status requested."""
    if draft.status != TransferStatus.REQUESTED:
        raise TransferValidationError(
            "status",
            "new attempts must start as requested",
            value=draft.status,
        )
