# -*- coding: utf-8 -*-
"""Custom exceptions for transfer attempts and their storage."""

from __future__ import annotations

from typing import Any


class TransferError(Exception):
    """Base exception for transfer-related errors."""

    pass


class MissingRequiredConfigError(TransferError):
    """Raised when a required configuration value is missing or invalid."""

    pass


class TransferValidationError(TransferError, ValueError):
    """Raised when a field of a transfer attempt is invalid.

    ``field`` names the offending field; ``value`` keeps the rejected input
    (e.g. the unparsable timestamp text).
    """

    def __init__(
        self,
        field: str,
        message: str | None = None,
        *,
        value: Any = None,
    ) -> None:
        super().__init__(message or f"invalid {field}")
        self.field = field
        self.value = value


class IncoherentStateError(TransferValidationError):
    """Raised when status and its side fields (error_type, transferred_at) disagree."""

    def __init__(self, message: str, *, status: Any = None) -> None:
        super().__init__("status", f"incoherent state: {message}", value=status)


class InvalidTransitionError(TransferError):
    """Raised for a status move not listed in the transition table."""

    def __init__(
        self,
        from_status: Any,
        to_status: Any,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"invalid transition: {_label(from_status)} -> {_label(to_status)}"
        )
        self.from_status = from_status
        self.to_status = to_status


class TransferRepositoryError(TransferError):
    """Base exception for attempt storage errors."""

    pass


class TransferNotFoundError(TransferRepositoryError):
    """Raised when a write targets an attempt that does not exist."""

    def __init__(self, product_id: str, attempt: int | None = None) -> None:
        where = product_id if attempt is None else f"{product_id}#{attempt}"
        super().__init__(f"transfer attempt not found: {where}")
        self.product_id = product_id
        self.attempt = attempt


class TransferConflictError(TransferRepositoryError):
    """Raised on a lost race: stale expected version or attempt number already taken."""

    def __init__(
        self,
        message: str,
        *,
        product_id: str | None = None,
        attempt: int | None = None,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        super().__init__(message)
        self.product_id = product_id
        self.attempt = attempt
        self.expected_version = expected_version
        self.actual_version = actual_version


class OperationNotPermittedError(TransferRepositoryError):
    """Raised for administrative operations disabled by configuration (delete, reset)."""

    pass


def _label(status: Any) -> str:
    return str(getattr(status, "value", status))
