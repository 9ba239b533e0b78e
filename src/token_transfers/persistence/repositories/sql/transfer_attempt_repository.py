# -*- coding: utf-8 -*-
"""SQLAlchemy transfer attempt repository.

Attempt allocation is a compare-and-swap on transfer_products.latest_attempt
inside the same transaction as the attempt INSERT. A writer that loses the
race (stale counter, duplicate product row or duplicate attempt key) rolls
back and retries with a fresh read, up to max_create_retries times.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Optional

import structlog
from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

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
from token_transfers.models.transfer_attempt import (
    TransferAttempt,
    TransferErrorType,
    TransferStatus,
)
from token_transfers.persistence.repositories.interfaces.transfer_attempt_repository import (
    ITransferAttemptRepository,
    SaveOptions,
    ensure_creatable,
    ensure_overwrite_allowed,
)
from token_transfers.persistence.repositories.sql.db import SessionProvider
from token_transfers.persistence.repositories.sql.models import (
    Base,
    TransferAttemptModel,
    TransferProductModel,
)
from token_transfers.utils.timestamps import to_utc
from token_transfers.utils.validation import normalize_id, normalize_optional

_EQ_FILTERS = ("product_id", "order_id", "owner_id", "mint_address", "from_address", "to_address")


class _AllocationRace(Exception):
    """Another writer advanced the product's counter between our read and write."""


def _to_entity(row: TransferAttemptModel) -> TransferAttempt:
    return TransferAttempt(
        product_id=row.product_id,
        attempt=row.attempt,
        mint_address=row.mint_address,
        from_address=row.from_address,
        to_address=row.to_address,
        requested_at=to_utc(row.requested_at),
        status=TransferStatus(row.status),
        transferred_at=to_utc(row.transferred_at) if row.transferred_at is not None else None,
        error_type=TransferErrorType(row.error_type) if row.error_type else None,
        order_id=row.order_id,
        owner_id=row.owner_id,
        tx_signature=row.tx_signature,
        error_message=row.error_message,
        version=row.version,
        updated_at=to_utc(row.updated_at) if row.updated_at is not None else None,
    )


def _row_values(t: TransferAttempt) -> dict[str, Any]:
    """Column values for t, primary key excluded."""
    return {
        "order_id": t.order_id,
        "owner_id": t.owner_id,
        "mint_address": t.mint_address,
        "from_address": t.from_address,
        "to_address": t.to_address,
        "requested_at": t.requested_at,
        "transferred_at": t.transferred_at,
        "status": t.status.value,
        "error_type": t.error_type.value if t.error_type is not None else None,
        "error_message": t.error_message,
        "tx_signature": t.tx_signature,
        "version": t.version,
        "updated_at": t.updated_at,
    }


def build_where(f: TransferFilter | None) -> list[ColumnElement[bool]]:
    """Translate a TransferFilter into WHERE clauses (ANDed)."""
    f = f or TransferFilter()
    m = TransferAttemptModel
    clauses: list[ColumnElement[bool]] = []
    for name in _EQ_FILTERS:
        wanted = normalize_optional(getattr(f, name))
        if wanted is not None:
            clauses.append(getattr(m, name) == wanted)
    if f.statuses:
        clauses.append(m.status.in_([s.value for s in f.statuses]))
    if f.error_types:
        clauses.append(m.error_type.in_([e.value for e in f.error_types]))
    if f.has_error is not None:
        clauses.append(m.error_type.is_not(None) if f.has_error else m.error_type.is_(None))
    if f.requested_from is not None:
        clauses.append(m.requested_at >= to_utc(f.requested_from))
    if f.requested_to is not None:
        clauses.append(m.requested_at < to_utc(f.requested_to))
    if f.transferred_from is not None:
        clauses.append(m.transferred_at >= to_utc(f.transferred_from))
    if f.transferred_to is not None:
        clauses.append(m.transferred_at < to_utc(f.transferred_to))
    return clauses


def build_order_by(sort: TransferSort | None) -> list[Any]:
    """ORDER BY for sort; NULLs last, ties on (product_id, attempt) in the same direction."""
    sort = sort or TransferSort()
    m = TransferAttemptModel
    column = {
        SortColumn.REQUESTED_AT: m.requested_at,
        SortColumn.TRANSFERRED_AT: m.transferred_at,
        SortColumn.STATUS: m.status,
        SortColumn.ATTEMPT: m.attempt,
    }[sort.column]
    if sort.descending:
        return [column.desc().nulls_last(), m.product_id.desc(), m.attempt.desc()]
    return [column.asc().nulls_last(), m.product_id.asc(), m.attempt.asc()]


class SqlTransferAttemptRepository(ITransferAttemptRepository):
    """SQLAlchemy implementation of ITransferAttemptRepository (SQLite, PostgreSQL, ...)."""

    def __init__(
        self,
        provider: Optional[SessionProvider] = None,
        *,
        db_url: Optional[str] = None,
        auto_create_schema: bool = True,
        default_per_page: int = 50,
        max_per_page: int = 200,
        allow_delete: bool = True,
        max_create_retries: int = 5,
        clock: Optional[Callable[[], datetime]] = None,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            provider: Session provider (injected); built from db_url when omitted.
            db_url: SQLAlchemy URL used when no provider is given.
            auto_create_schema: Create missing tables on startup.
            default_per_page: Page size when the caller gives none.
            max_per_page: Upper bound on page size.
            allow_delete: Enable delete() and reset().
            max_create_retries: Allocation attempts before create_attempt gives up.
            clock: UTC clock for updated_at (injected for tests).
            get_logger: Logger factory (injected).
            logger_name: Optional logger name (defaults to class name).
        """
        self._provider = provider or SessionProvider(db_url)
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)
        self._default_per_page = default_per_page
        self._max_per_page = max_per_page
        self._allow_delete = allow_delete
        self._max_create_retries = max(1, max_create_retries)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = get_logger(logger_name or self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Reads (session work runs in a worker thread; the event loop never blocks on SQL)
    # -------------------------------------------------------------------------

    async def get_latest_by_product_id(self, product_id: str) -> Optional[TransferAttempt]:
        """Return the attempt with the highest number for product_id, or None."""
        return await asyncio.to_thread(self._get_latest, normalize_id(product_id))

    async def get_by_product_id_and_attempt(
        self,
        product_id: str,
        attempt: int,
    ) -> Optional[TransferAttempt]:
        """Return the exact attempt, or None if missing."""
        return await asyncio.to_thread(self._get_one, normalize_id(product_id), attempt)

    async def list_by_product_id(self, product_id: str) -> list[TransferAttempt]:
        """Return the full history for product_id, ordered by attempt ascending."""
        return await asyncio.to_thread(self._history, normalize_id(product_id))

    async def list(
        self,
        filter: TransferFilter | None = None,
        sort: TransferSort | None = None,
        page: Page | None = None,
    ) -> PageResult[TransferAttempt]:
        """Return one page of attempts matching filter, ordered by sort."""
        return await asyncio.to_thread(self._list_page, filter, sort, page)

    async def count(self, filter: TransferFilter | None = None) -> int:
        """Return the number of attempts matching filter."""
        clauses = build_where(filter)
        return await asyncio.to_thread(self._count_where, clauses)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_attempt(self, draft: TransferAttempt) -> TransferAttempt:
        """Persist draft as the next attempt; retries lost allocation races."""
        ensure_creatable(draft)
        for try_number in range(1, self._max_create_retries + 1):
            try:
                return await asyncio.to_thread(self._create_once, draft)
            except _AllocationRace as exc:
                self._logger.warning(
                    "transfer_attempt_allocation_race",
                    product_id=draft.product_id,
                    try_number=try_number,
                    max_tries=self._max_create_retries,
                    reason=str(exc),
                )
        raise TransferConflictError(
            f"could not allocate attempt for {draft.product_id} after {self._max_create_retries} tries",
            product_id=draft.product_id,
        )

    async def save(
        self,
        transfer: TransferAttempt,
        options: SaveOptions | None = None,
    ) -> TransferAttempt:
        """Overwrite the stored record with a version-conditional UPDATE."""
        return await asyncio.to_thread(self._save, transfer, options)

    async def delete(self, product_id: str, attempt: int) -> None:
        """Delete one attempt. The product's counter is kept so numbers are never reused."""
        if not self._allow_delete:
            raise OperationNotPermittedError("delete is disabled for transfer attempts")
        await asyncio.to_thread(self._delete, normalize_id(product_id), attempt)

    async def reset(self) -> None:
        """Delete every attempt and allocation counter."""
        if not self._allow_delete:
            raise OperationNotPermittedError("reset is disabled for transfer attempts")
        attempts, products = await asyncio.to_thread(self._reset)
        self._logger.info("transfer_attempts_reset", deleted_attempts=attempts, deleted_products=products)

    # -------------------------------------------------------------------------
    # Synchronous session work
    # -------------------------------------------------------------------------

    def _get_latest(self, product_id: str) -> Optional[TransferAttempt]:
        if not product_id:
            return None
        stmt = (
            select(TransferAttemptModel)
            .where(TransferAttemptModel.product_id == product_id)
            .order_by(TransferAttemptModel.attempt.desc())
            .limit(1)
        )
        with self._provider.session() as session:
            row = session.execute(stmt).scalars().first()
            return _to_entity(row) if row is not None else None

    def _get_one(self, product_id: str, attempt: int) -> Optional[TransferAttempt]:
        if not product_id or attempt <= 0:
            return None
        with self._provider.session() as session:
            row = session.get(TransferAttemptModel, (product_id, attempt))
            return _to_entity(row) if row is not None else None

    def _history(self, product_id: str) -> list[TransferAttempt]:
        if not product_id:
            return []
        stmt = (
            select(TransferAttemptModel)
            .where(TransferAttemptModel.product_id == product_id)
            .order_by(TransferAttemptModel.attempt.asc())
        )
        with self._provider.session() as session:
            return [_to_entity(row) for row in session.execute(stmt).scalars().all()]

    def _list_page(
        self,
        filter: TransferFilter | None,
        sort: TransferSort | None,
        page: Page | None,
    ) -> PageResult[TransferAttempt]:
        number, per_page, offset = normalize_page(page, self._default_per_page, self._max_per_page)
        clauses = build_where(filter)
        stmt = (
            select(TransferAttemptModel)
            .where(*clauses)
            .order_by(*build_order_by(sort))
            .offset(offset)
            .limit(per_page)
        )
        with self._provider.session() as session:
            items = [_to_entity(row) for row in session.execute(stmt).scalars().all()]
            total = self._count(session, clauses)
        return PageResult(
            items=items,
            total_count=total,
            total_pages=compute_total_pages(total, per_page),
            page=number,
            per_page=per_page,
        )

    def _count_where(self, clauses: list[ColumnElement[bool]]) -> int:
        with self._provider.session() as session:
            return self._count(session, clauses)

    def _save(self, transfer: TransferAttempt, options: SaveOptions | None) -> TransferAttempt:
        m = TransferAttemptModel
        with self._provider.session() as session:
            with session.begin():
                row = session.get(m, (transfer.product_id, transfer.attempt))
                if row is None:
                    raise TransferNotFoundError(transfer.product_id, transfer.attempt)
                stored = _to_entity(row)
                if options is not None and options.expected_version is not None:
                    if stored.version != options.expected_version:
                        raise self._version_conflict(transfer, options.expected_version, stored.version)
                ensure_overwrite_allowed(stored, transfer)
                updated = transfer.with_persisted(transfer.attempt, stored.version + 1, self._clock())
                result = session.execute(
                    update(m)
                    .where(
                        m.product_id == transfer.product_id,
                        m.attempt == transfer.attempt,
                        m.version == stored.version,
                    )
                    .values(**_row_values(updated))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise self._version_conflict(transfer, stored.version, None)
        return updated

    def _delete(self, product_id: str, attempt: int) -> None:
        m = TransferAttemptModel
        with self._provider.session() as session:
            with session.begin():
                result = session.execute(
                    delete(m)
                    .where(m.product_id == product_id, m.attempt == attempt)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise TransferNotFoundError(product_id, attempt)

    def _reset(self) -> tuple[int, int]:
        with self._provider.session() as session:
            with session.begin():
                attempts = session.execute(delete(TransferAttemptModel)).rowcount
                products = session.execute(delete(TransferProductModel)).rowcount
        return attempts, products

    def _create_once(self, draft: TransferAttempt) -> TransferAttempt:
        """One allocation try in a single transaction. Raises _AllocationRace on a lost race."""
        product_id = draft.product_id
        now = self._clock()
        with self._provider.session() as session:
            try:
                with session.begin():
                    counter = self._read_counter(session, product_id)
                    next_attempt = max(counter or 0, self._read_highest(session, product_id)) + 1
                    if counter is None:
                        session.add(
                            TransferProductModel(
                                product_id=product_id,
                                latest_attempt=next_attempt,
                                created_at=now,
                                updated_at=now,
                            )
                        )
                        session.flush()
                    else:
                        result = session.execute(
                            update(TransferProductModel)
                            .where(
                                TransferProductModel.product_id == product_id,
                                TransferProductModel.latest_attempt == counter,
                            )
                            .values(latest_attempt=next_attempt, updated_at=now)
                            .execution_options(synchronize_session=False)
                        )
                        if result.rowcount != 1:
                            raise _AllocationRace(f"counter moved past {counter}")
                    created = draft.with_persisted(next_attempt, 1, now)
                    session.add(
                        TransferAttemptModel(
                            product_id=product_id,
                            attempt=next_attempt,
                            **_row_values(created),
                        )
                    )
                    session.flush()
            except IntegrityError as exc:
                raise _AllocationRace("duplicate key") from exc
        return created

    def _read_counter(self, session: Session, product_id: str) -> Optional[int]:
        """Current latest_attempt for product_id, None when the product has no counter row."""
        return session.execute(
            select(TransferProductModel.latest_attempt).where(TransferProductModel.product_id == product_id)
        ).scalar_one_or_none()

    def _read_highest(self, session: Session, product_id: str) -> int:
        """Highest stored attempt number (covers rows written before the counter existed)."""
        highest = session.execute(
            select(func.max(TransferAttemptModel.attempt)).where(TransferAttemptModel.product_id == product_id)
        ).scalar_one()
        return highest or 0

    def _count(self, session: Session, clauses: list[ColumnElement[bool]]) -> int:
        stmt = select(func.count()).select_from(TransferAttemptModel).where(*clauses)
        return int(session.execute(stmt).scalar_one())

    def _version_conflict(
        self,
        transfer: TransferAttempt,
        expected: int,
        actual: Optional[int],
    ) -> TransferConflictError:
        return TransferConflictError(
            f"version mismatch for {transfer.product_id}#{transfer.attempt}",
            product_id=transfer.product_id,
            attempt=transfer.attempt,
            expected_version=expected,
            actual_version=actual,
        )
