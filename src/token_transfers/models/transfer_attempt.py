# -*- coding: utf-8 -*-
"""TransferAttempt: one numbered try at moving a product's ownership token.

Identity is (product_id, attempt). The attempt number is assigned by the
repository on creation; drafts carry attempt=0 until then.

Lifecycle: requested -> fulfilled | error. A failed attempt is permanent
history; a retry is a new attempt built with retry() and persisted through
the repository's create_attempt, never a reset of the failed record.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

from token_transfers.exceptions import (
    IncoherentStateError,
    InvalidTransitionError,
    TransferValidationError,
)
from token_transfers.utils.timestamps import parse_timestamp, to_utc
from token_transfers.utils.validation import (
    is_base58_address,
    normalize_id,
    normalize_optional,
)


class TransferStatus(str, Enum):
    """Attempt lifecycle state."""

    REQUESTED = "requested"
    FULFILLED = "fulfilled"
    ERROR = "error"


class TransferErrorType(str, Enum):
    """Why an attempt failed."""

    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_ADDRESS = "invalid_address"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


ALLOWED_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.REQUESTED: frozenset({TransferStatus.FULFILLED, TransferStatus.ERROR}),
    TransferStatus.ERROR: frozenset({TransferStatus.REQUESTED}),
    TransferStatus.FULFILLED: frozenset(),
}
"""from -> statuses it may move to. Anything not listed (same-state included) is illegal."""


def can_transition(from_status: TransferStatus, to_status: TransferStatus) -> bool:
    """Return True if from_status -> to_status is listed in ALLOWED_TRANSITIONS."""
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def parse_status(value: Any) -> TransferStatus:
    """Coerce a status or its string value. Raises TransferValidationError(field='status')."""
    if isinstance(value, TransferStatus):
        return value
    try:
        return TransferStatus(normalize_id(value).lower())
    except ValueError:
        raise TransferValidationError("status", f"unknown status: {value!r}", value=value) from None


def parse_error_type(value: Any) -> Optional[TransferErrorType]:
    """Coerce an error type or its string value; None/blank stays None."""
    if value is None or isinstance(value, TransferErrorType):
        return value
    s = normalize_id(value).lower()
    if not s:
        return None
    try:
        return TransferErrorType(s)
    except ValueError:
        raise TransferValidationError(
            "error_type", f"unknown error type: {value!r}", value=value
        ) from None


def _is_zero_time(value: datetime) -> bool:
    return value.replace(tzinfo=None) == datetime.min


def _require_datetime(field: str, value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise TransferValidationError(field, f"{field} must be a datetime", value=value)
    if _is_zero_time(value):
        raise TransferValidationError(field, f"{field} must be set", value=value)
    return to_utc(value)


def _parse_text_timestamp(field: str, text: str) -> datetime:
    try:
        return parse_timestamp(text)
    except ValueError:
        raise TransferValidationError(field, f"invalid {field}: {text!r}", value=text) from None


@dataclass(frozen=True, slots=True)
class TransferAttempt:
    """One transfer attempt. Instances are always valid: __post_init__ trims text fields
    and runs validate().

    Optional side fields follow status:
    requested -> no error_type, no transferred_at;
    fulfilled -> transferred_at >= requested_at, no error_type;
    error -> error_type set, no transferred_at.
    error_message only accompanies error; tx_signature may stay on a failed attempt.
    """

    product_id: str
    attempt: int
    """Per-product sequence number, assigned by the repository (0 for an unsaved draft)."""

    mint_address: str
    from_address: str
    to_address: str

    requested_at: datetime
    """Set at creation; never changes for a persisted attempt."""
    status: TransferStatus = TransferStatus.REQUESTED
    transferred_at: Optional[datetime] = None
    error_type: Optional[TransferErrorType] = None

    order_id: Optional[str] = None
    """Order that triggered the transfer, if any."""
    owner_id: Optional[str] = None
    """Current owner (member/avatar) of the token, for support queries."""
    tx_signature: Optional[str] = None
    """Chain signature recorded on fulfilment."""
    error_message: Optional[str] = None
    """Free-text failure detail; only kept while status is error."""

    version: int = 0
    """Optimistic-concurrency version: 0 for drafts, 1 on create, +1 per write."""
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("product_id", "mint_address", "from_address", "to_address"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, value.strip())
        for name in ("order_id", "owner_id", "tx_signature", "error_message"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, normalize_optional(value))
        self.validate()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """Check field rules and status coherence. Raises TransferValidationError."""
        if not isinstance(self.product_id, str) or not self.product_id.strip():
            raise TransferValidationError(
                "product_id", "product_id must be non-empty", value=self.product_id
            )
        if not isinstance(self.attempt, int) or self.attempt < 0:
            raise TransferValidationError("attempt", "attempt must be >= 0", value=self.attempt)
        for field in ("mint_address", "from_address", "to_address"):
            value = getattr(self, field)
            if not is_base58_address(value):
                raise TransferValidationError(
                    field, f"{field} must be a base58 address (32-44 chars)", value=value
                )
        if not isinstance(self.requested_at, datetime) or self.requested_at.tzinfo is None:
            raise TransferValidationError(
                "requested_at", "requested_at must be an aware datetime", value=self.requested_at
            )
        if not isinstance(self.status, TransferStatus):
            raise TransferValidationError("status", f"unknown status: {self.status!r}", value=self.status)
        if self.error_type is not None and not isinstance(self.error_type, TransferErrorType):
            raise TransferValidationError(
                "error_type", f"unknown error type: {self.error_type!r}", value=self.error_type
            )
        if self.transferred_at is not None and (
            not isinstance(self.transferred_at, datetime) or self.transferred_at.tzinfo is None
        ):
            raise TransferValidationError(
                "transferred_at", "transferred_at must be an aware datetime", value=self.transferred_at
            )
        if self.version < 0:
            raise TransferValidationError("version", "version must be >= 0", value=self.version)
        self._validate_coherence()

    def _validate_coherence(self) -> None:
        status = self.status
        if status != TransferStatus.ERROR and self.error_message is not None:
            raise IncoherentStateError(f"{status.value} attempt has error_message", status=status)
        if status == TransferStatus.REQUESTED:
            if self.error_type is not None:
                raise IncoherentStateError("requested attempt has error_type", status=status)
            if self.transferred_at is not None:
                raise IncoherentStateError("requested attempt has transferred_at", status=status)
        elif status == TransferStatus.FULFILLED:
            if self.error_type is not None:
                raise IncoherentStateError("fulfilled attempt has error_type", status=status)
            if self.transferred_at is None:
                raise IncoherentStateError("fulfilled attempt has no transferred_at", status=status)
            if self.transferred_at < self.requested_at:
                raise TransferValidationError(
                    "transferred_at",
                    "transferred_at must not be before requested_at",
                    value=self.transferred_at,
                )
        elif status == TransferStatus.ERROR:
            if self.error_type is None:
                raise IncoherentStateError("error attempt has no error_type", status=status)
            if self.transferred_at is not None:
                raise IncoherentStateError("error attempt has transferred_at", status=status)

    # -------------------------------------------------------------------------
    # Transitions (each returns a new instance)
    # -------------------------------------------------------------------------

    def transition(
        self,
        next_status: TransferStatus | str,
        *,
        transferred_at: Optional[datetime] = None,
        error_type: TransferErrorType | str | None = None,
        tx_signature: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> TransferAttempt:
        """Move to next_status with the side data that status requires.

        Raises:
            InvalidTransitionError: The move is not in ALLOWED_TRANSITIONS.
            TransferValidationError: Required side data is missing or extra.
        """
        target = parse_status(next_status)
        if not can_transition(self.status, target):
            raise InvalidTransitionError(self.status, target)

        if target == TransferStatus.FULFILLED:
            if transferred_at is None:
                raise TransferValidationError(
                    "transferred_at", "transferred_at is required to fulfil", value=None
                )
            if error_type is not None:
                raise IncoherentStateError("fulfilled attempt cannot carry error_type", status=target)
            return replace(
                self,
                status=target,
                transferred_at=_require_datetime("transferred_at", transferred_at),
                error_type=None,
                error_message=None,
                tx_signature=normalize_optional(tx_signature) or self.tx_signature,
            )

        if target == TransferStatus.ERROR:
            parsed = parse_error_type(error_type)
            if parsed is None:
                raise TransferValidationError("error_type", "error_type is required to fail", value=error_type)
            if transferred_at is not None:
                raise IncoherentStateError("error attempt cannot carry transferred_at", status=target)
            return replace(
                self,
                status=target,
                transferred_at=None,
                error_type=parsed,
                error_message=normalize_optional(error_message),
            )

        if transferred_at is not None or error_type is not None:
            raise IncoherentStateError("requested attempt cannot carry side data", status=target)
        return replace(
            self,
            status=target,
            transferred_at=None,
            error_type=None,
            error_message=None,
            tx_signature=None,
        )

    def mark_fulfilled(self, at: Optional[datetime], *, tx_signature: Optional[str] = None) -> TransferAttempt:
        """Return a fulfilled copy with transferred_at=at. `at` must be set (not None / datetime.min)."""
        if at is None:
            raise TransferValidationError("transferred_at", "transferred_at must be set", value=at)
        return self.transition(
            TransferStatus.FULFILLED,
            transferred_at=_require_datetime("transferred_at", at),
            tx_signature=tx_signature,
        )

    def mark_error(
        self,
        error_type: TransferErrorType | str,
        *,
        message: Optional[str] = None,
    ) -> TransferAttempt:
        """Return an error copy with error_type set. Unknown or empty error types are rejected."""
        parsed = parse_error_type(error_type)
        if parsed is None:
            raise TransferValidationError("error_type", "error_type must be set", value=error_type)
        return self.transition(TransferStatus.ERROR, error_type=parsed, error_message=message)

    def retry(
        self,
        *,
        requested_at: Optional[datetime] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> TransferAttempt:
        """Build the draft for the next attempt from this failed one.

        Side fields are cleared and status goes back to requested. The draft is
        unsaved (attempt=0, version=0) with a fresh requested_at; persist it
        with create_attempt so the failed record stays in history.
        """
        cleared = self.transition(TransferStatus.REQUESTED)
        now = requested_at or (clock or _utcnow)()
        return replace(
            cleared,
            attempt=0,
            version=0,
            requested_at=_require_datetime("requested_at", now),
            updated_at=None,
        )

    def apply_patch(self, patch: TransferAttemptPatch) -> TransferAttempt:
        """Return a copy with patch applied as one unit.

        A status different from the current one goes through transition(); the
        side fields in the patch travel with it. Without a status change only
        side fields are replaced and the result must still be coherent.
        """
        if patch.status is not None and parse_status(patch.status) != self.status:
            return self.transition(
                patch.status,
                transferred_at=patch.transferred_at,
                error_type=patch.error_type,
                tx_signature=patch.tx_signature,
                error_message=patch.error_message,
            )
        return replace(
            self,
            transferred_at=(
                _require_datetime("transferred_at", patch.transferred_at)
                if patch.transferred_at is not None
                else self.transferred_at
            ),
            error_type=(
                parse_error_type(patch.error_type) if patch.error_type is not None else self.error_type
            ),
            tx_signature=(
                normalize_optional(patch.tx_signature) if patch.tx_signature is not None else self.tx_signature
            ),
            error_message=(
                normalize_optional(patch.error_message)
                if patch.error_message is not None
                else self.error_message
            ),
        )

    # -------------------------------------------------------------------------
    # Repository helpers
    # -------------------------------------------------------------------------

    def with_persisted(self, attempt: int, version: int, updated_at: datetime) -> TransferAttempt:
        """Return a copy stamped with storage-assigned attempt, version and updated_at."""
        return replace(self, attempt=attempt, version=version, updated_at=to_utc(updated_at))

    @property
    def key(self) -> tuple[str, int]:
        return (self.product_id, self.attempt)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    @property
    def is_draft(self) -> bool:
        return self.attempt == 0

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        product_id: str,
        mint_address: str,
        from_address: str,
        to_address: str,
        *,
        requested_at: Optional[datetime] = None,
        transferred_at: Optional[datetime] = None,
        status: TransferStatus | str = TransferStatus.REQUESTED,
        error_type: TransferErrorType | str | None = None,
        attempt: int = 0,
        order_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        tx_signature: Optional[str] = None,
        error_message: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> TransferAttempt:
        """Create a validated attempt (a draft unless attempt is given).

        Strings are trimmed, enums accept their string values and datetimes are
        normalised to UTC. requested_at defaults to the clock (UTC now).

        Raises:
            TransferValidationError: Naming the offending field, or
                IncoherentStateError when status and side fields disagree.
        """
        requested = (
            _require_datetime("requested_at", requested_at)
            if requested_at is not None
            else (clock or _utcnow)()
        )
        return cls(
            product_id=normalize_id(product_id),
            attempt=attempt,
            mint_address=normalize_id(mint_address),
            from_address=normalize_id(from_address),
            to_address=normalize_id(to_address),
            requested_at=to_utc(requested),
            status=parse_status(status),
            transferred_at=(
                _require_datetime("transferred_at", transferred_at) if transferred_at is not None else None
            ),
            error_type=parse_error_type(error_type),
            order_id=normalize_optional(order_id),
            owner_id=normalize_optional(owner_id),
            tx_signature=normalize_optional(tx_signature),
            error_message=normalize_optional(error_message),
        )

    @classmethod
    def from_text_timestamps(
        cls,
        product_id: str,
        mint_address: str,
        from_address: str,
        to_address: str,
        *,
        requested_at: str,
        transferred_at: Optional[str] = None,
        status: TransferStatus | str = TransferStatus.REQUESTED,
        error_type: TransferErrorType | str | None = None,
        attempt: int = 0,
        order_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        tx_signature: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> TransferAttempt:
        """Same as create() with timestamps given as text (see utils.timestamps).

        Unparsable text raises TransferValidationError for that field with the text as value.
        """
        transferred = (
            _parse_text_timestamp("transferred_at", transferred_at)
            if transferred_at is not None and transferred_at.strip()
            else None
        )
        return cls.create(
            product_id,
            mint_address,
            from_address,
            to_address,
            requested_at=_parse_text_timestamp("requested_at", requested_at),
            transferred_at=transferred,
            status=status,
            error_type=error_type,
            attempt=attempt,
            order_id=order_id,
            owner_id=owner_id,
            tx_signature=tx_signature,
            error_message=error_message,
        )


@dataclass(frozen=True, slots=True)
class TransferAttemptPatch:
    """Partial update for an attempt. None means "leave unchanged"."""

    status: TransferStatus | str | None = None
    error_type: TransferErrorType | str | None = None
    transferred_at: Optional[datetime] = None
    tx_signature: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (
                self.status,
                self.error_type,
                self.transferred_at,
                self.tx_signature,
                self.error_message,
            )
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)
