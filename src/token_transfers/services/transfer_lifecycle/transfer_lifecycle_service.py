# -*- coding: utf-8 -*-
"""TransferLifecycleService: the verbs callers use to drive transfer attempts.

request_transfer -> (chain callback) mark_fulfilled | mark_failed -> retry.
Every step is one repository call plus one event; conflicts are surfaced to
the caller, never retried here.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Optional

import structlog

from token_transfers.events.transfers import (
    TransferFailedEvent,
    TransferFulfilledEvent,
    TransferRequestedEvent,
)
from token_transfers.exceptions import InvalidTransitionError, TransferNotFoundError
from token_transfers.models.query import Page, PageResult, TransferFilter, TransferSort
from token_transfers.models.transfer_attempt import (
    TransferAttempt,
    TransferErrorType,
    TransferStatus,
)
from token_transfers.persistence.repositories.interfaces.transfer_attempt_repository import (
    ITransferAttemptRepository,
    SaveOptions,
)
from token_transfers.utils.validation import mask_address, normalize_id


class TransferLifecycleService:
    """Creates attempts and records their outcome through ITransferAttemptRepository."""

    def __init__(
        self,
        repository: ITransferAttemptRepository,
        event_bus: Any,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Attempt repository (injected).
            event_bus: Event bus with dispatch(event) (injected).
            clock: UTC clock for requested_at / transferred_at defaults.
            get_logger: Logger factory (injected).
            logger_name: Optional logger name (defaults to class name).
        """
        self._repo = repository
        self._event_bus = event_bus
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = get_logger(logger_name or self.__class__.__name__)

    async def request_transfer(
        self,
        product_id: str,
        mint_address: str,
        from_address: str,
        to_address: str,
        *,
        order_id: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> TransferAttempt:
        """Validate and persist a new requested attempt for product_id.

        Raises:
            TransferValidationError: Invalid ids or addresses.
            TransferConflictError: Attempt allocation lost under contention.
        """
        draft = TransferAttempt.create(
            product_id,
            mint_address,
            from_address,
            to_address,
            order_id=order_id,
            owner_id=owner_id,
            clock=self._clock,
        )
        created = await self._repo.create_attempt(draft)
        self._logger.info(
            "transfer_requested",
            product_id=created.product_id,
            attempt=created.attempt,
            to_address_masked=mask_address(created.to_address),
            order_id=created.order_id,
        )
        self._dispatch_requested(created)
        return created

    async def mark_fulfilled(
        self,
        product_id: str,
        attempt: int,
        *,
        at: Optional[datetime] = None,
        tx_signature: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TransferAttempt:
        """Record chain confirmation for an attempt (transferred_at defaults to now).

        Raises:
            TransferNotFoundError: No such attempt.
            InvalidTransitionError: The attempt is not in status requested.
            TransferConflictError: The attempt changed since it was loaded.
        """
        current = await self._load(product_id, attempt)
        fulfilled = current.mark_fulfilled(at or self._clock(), tx_signature=tx_signature)
        saved = await self._repo.save(fulfilled, self._options(current, expected_version))
        self._logger.info(
            "transfer_fulfilled",
            product_id=saved.product_id,
            attempt=saved.attempt,
            tx_signature=saved.tx_signature,
        )
        self._event_bus.dispatch(
            TransferFulfilledEvent(
                product_id=saved.product_id,
                attempt=saved.attempt,
                to_address=saved.to_address,
                transferred_at=saved.transferred_at,
                tx_signature=saved.tx_signature,
            )
        )
        return saved

    async def mark_failed(
        self,
        product_id: str,
        attempt: int,
        error_type: TransferErrorType | str,
        *,
        message: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> TransferAttempt:
        """Record a failed attempt with its error type.

        Raises:
            TransferNotFoundError: No such attempt.
            TransferValidationError: Unknown error type.
            InvalidTransitionError: The attempt is not in status requested.
            TransferConflictError: The attempt changed since it was loaded.
        """
        current = await self._load(product_id, attempt)
        failed = current.mark_error(error_type, message=message)
        saved = await self._repo.save(failed, self._options(current, expected_version))
        error_value = saved.error_type.value if saved.error_type is not None else TransferErrorType.UNKNOWN.value
        self._logger.warning(
            "transfer_failed",
            product_id=saved.product_id,
            attempt=saved.attempt,
            error_type=error_value,
            error_message=saved.error_message,
        )
        self._event_bus.dispatch(
            TransferFailedEvent(
                product_id=saved.product_id,
                attempt=saved.attempt,
                error_type=error_value,
                error_message=saved.error_message,
            )
        )
        return saved

    async def retry(self, product_id: str) -> TransferAttempt:
        """Create the next attempt for a product whose latest attempt failed.

        The failed attempt stays untouched; the new one copies its addresses and
        references and starts in status requested with the next attempt number.

        Raises:
            TransferNotFoundError: The product has no attempts.
            InvalidTransitionError: The latest attempt is not in status error.
            TransferConflictError: Attempt allocation lost under contention.
        """
        latest = await self._repo.get_latest_by_product_id(product_id)
        if latest is None:
            raise TransferNotFoundError(normalize_id(product_id))
        if latest.status != TransferStatus.ERROR:
            raise InvalidTransitionError(
                latest.status,
                TransferStatus.REQUESTED,
                f"latest attempt {latest.product_id}#{latest.attempt} is {latest.status.value}; only failed transfers can be retried",
            )
        created = await self._repo.create_attempt(latest.retry(clock=self._clock))
        self._logger.info(
            "transfer_retry_requested",
            product_id=created.product_id,
            attempt=created.attempt,
            retry_of=latest.attempt,
            previous_error_type=latest.error_type.value if latest.error_type else None,
        )
        self._dispatch_requested(created, retry_of=latest.attempt)
        return created

    # -------------------------------------------------------------------------
    # Queries for support tooling
    # -------------------------------------------------------------------------

    async def get_latest(self, product_id: str) -> Optional[TransferAttempt]:
        return await self._repo.get_latest_by_product_id(product_id)

    async def history(self, product_id: str) -> list[TransferAttempt]:
        return await self._repo.list_by_product_id(product_id)

    async def list(
        self,
        filter: TransferFilter | None = None,
        sort: TransferSort | None = None,
        page: Page | None = None,
    ) -> PageResult[TransferAttempt]:
        return await self._repo.list(filter, sort, page)

    async def count(self, filter: TransferFilter | None = None) -> int:
        return await self._repo.count(filter)

    # -------------------------------------------------------------------------

    async def _load(self, product_id: str, attempt: int) -> TransferAttempt:
        current = await self._repo.get_by_product_id_and_attempt(product_id, attempt)
        if current is None:
            self._logger.debug("transfer_attempt_not_found", product_id=product_id, attempt=attempt)
            raise TransferNotFoundError(normalize_id(product_id), attempt)
        return current

    @staticmethod
    def _options(current: TransferAttempt, expected_version: Optional[int]) -> SaveOptions:
        return SaveOptions(
            expected_version=expected_version if expected_version is not None else current.version
        )

    def _dispatch_requested(self, created: TransferAttempt, *, retry_of: Optional[int] = None) -> None:
        self._event_bus.dispatch(
            TransferRequestedEvent(
                product_id=created.product_id,
                attempt=created.attempt,
                mint_address=created.mint_address,
                from_address=created.from_address,
                to_address=created.to_address,
                requested_at=created.requested_at,
                order_id=created.order_id,
                owner_id=created.owner_id,
                retry_of=retry_of,
            )
        )
