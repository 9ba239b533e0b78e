# -*- coding: utf-8 -*-
"""In-memory transfer attempt repository (keyed by product_id, then attempt)."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Optional

from token_transfers.exceptions import (
    OperationNotPermittedError,
    TransferConflictError,
    TransferNotFoundError,
)
from token_transfers.models.query import (
    Page,
    PageResult,
    SortColumn,
    TransferFilter,
    TransferSort,
    compute_total_pages,
    normalize_page,
)
from token_transfers.models.transfer_attempt import TransferAttempt
from token_transfers.persistence.repositories.interfaces.transfer_attempt_repository import (
    ITransferAttemptRepository,
    SaveOptions,
    ensure_creatable,
    ensure_overwrite_allowed,
)
from token_transfers.utils.validation import normalize_id


def _sort_value(t: TransferAttempt, column: SortColumn) -> Any:
    if column == SortColumn.TRANSFERRED_AT:
        return t.transferred_at
    if column == SortColumn.STATUS:
        return t.status.value
    if column == SortColumn.ATTEMPT:
        return t.attempt
    return t.requested_at


def sort_attempts(items: Iterable[TransferAttempt], sort: TransferSort) -> list[TransferAttempt]:
    """Order by sort.column then (product_id, attempt), same direction; missing values last."""
    ordered = sorted(items, key=lambda t: (t.product_id, t.attempt), reverse=sort.descending)
    present = [t for t in ordered if _sort_value(t, sort.column) is not None]
    missing = [t for t in ordered if _sort_value(t, sort.column) is None]
    present.sort(key=lambda t: _sort_value(t, sort.column), reverse=sort.descending)
    return present + missing


class InMemoryTransferAttemptRepository(ITransferAttemptRepository):
    """In-memory implementation of ITransferAttemptRepository.

    create_attempt reads the high-water mark and inserts without an await in
    between, so on one event loop no other create can interleave.
    """

    def __init__(
        self,
        *,
        default_per_page: int = 50,
        max_per_page: int = 200,
        allow_delete: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize an empty in-memory store."""
        self._store: dict[str, dict[int, TransferAttempt]] = {}
        self._latest: dict[str, int] = {}
        """Highest attempt ever allocated per product (survives delete)."""
        self._default_per_page = default_per_page
        self._max_per_page = max_per_page
        self._allow_delete = allow_delete
        self._clock = clock or (lambda: datetime.now(UTC))

    async def get_latest_by_product_id(self, product_id: str) -> Optional[TransferAttempt]:
        """Return the attempt with the highest number for product_id, or None."""
        history = self._store.get(normalize_id(product_id))
        if not history:
            return None
        return history[max(history)]

    async def get_by_product_id_and_attempt(
        self,
        product_id: str,
        attempt: int,
    ) -> Optional[TransferAttempt]:
        """Return the exact attempt, or None if missing."""
        return self._store.get(normalize_id(product_id), {}).get(attempt)

    async def list_by_product_id(self, product_id: str) -> list[TransferAttempt]:
        """Return the full history for product_id, ordered by attempt ascending."""
        history = self._store.get(normalize_id(product_id), {})
        return [history[n] for n in sorted(history)]

    async def list(
        self,
        filter: TransferFilter | None = None,
        sort: TransferSort | None = None,
        page: Page | None = None,
    ) -> PageResult[TransferAttempt]:
        """Return one page of attempts matching filter, ordered by sort."""
        number, per_page, offset = normalize_page(page, self._default_per_page, self._max_per_page)
        matched = sort_attempts(self._matching(filter), sort or TransferSort())
        return PageResult(
            items=matched[offset : offset + per_page],
            total_count=len(matched),
            total_pages=compute_total_pages(len(matched), per_page),
            page=number,
            per_page=per_page,
        )

    async def count(self, filter: TransferFilter | None = None) -> int:
        """Return the number of attempts matching filter."""
        return len(self._matching(filter))

    async def create_attempt(self, draft: TransferAttempt) -> TransferAttempt:
        """Persist draft as attempt max + 1 for its product (1 when new)."""
        ensure_creatable(draft)
        product_id = draft.product_id
        history = self._store.setdefault(product_id, {})
        next_attempt = max(self._latest.get(product_id, 0), max(history, default=0)) + 1
        if next_attempt in history:
            raise TransferConflictError(
                f"transfer attempt already exists: {product_id}#{next_attempt}",
                product_id=product_id,
                attempt=next_attempt,
            )
        created = draft.with_persisted(next_attempt, 1, self._clock())
        history[next_attempt] = created
        self._latest[product_id] = next_attempt
        return created

    async def save(
        self,
        transfer: TransferAttempt,
        options: SaveOptions | None = None,
    ) -> TransferAttempt:
        """Overwrite the stored record when the version precondition (if any) holds."""
        stored = await self.get_by_product_id_and_attempt(transfer.product_id, transfer.attempt)
        if stored is None:
            raise TransferNotFoundError(transfer.product_id, transfer.attempt)
        if options is not None and options.expected_version is not None:
            if stored.version != options.expected_version:
                raise TransferConflictError(
                    f"version mismatch for {transfer.product_id}#{transfer.attempt}",
                    product_id=transfer.product_id,
                    attempt=transfer.attempt,
                    expected_version=options.expected_version,
                    actual_version=stored.version,
                )
        ensure_overwrite_allowed(stored, transfer)
        updated = transfer.with_persisted(transfer.attempt, stored.version + 1, self._clock())
        self._store[transfer.product_id][transfer.attempt] = updated
        return updated

    async def delete(self, product_id: str, attempt: int) -> None:
        """Delete one attempt. Raises TransferNotFoundError on miss."""
        if not self._allow_delete:
            raise OperationNotPermittedError("delete is disabled for transfer attempts")
        product_id = normalize_id(product_id)
        history = self._store.get(product_id, {})
        if attempt not in history:
            raise TransferNotFoundError(product_id, attempt)
        del history[attempt]

    async def reset(self) -> None:
        """Delete every attempt and allocation counter."""
        if not self._allow_delete:
            raise OperationNotPermittedError("reset is disabled for transfer attempts")
        self._store.clear()
        self._latest.clear()

    def _matching(self, filter: TransferFilter | None) -> list[TransferAttempt]:
        f = filter or TransferFilter()
        product_id = normalize_id(f.product_id)
        histories = [self._store.get(product_id, {})] if product_id else list(self._store.values())
        return [t for history in histories for t in history.values() if f.matches(t)]
