"""Exceptions subpackage."""

from token_transfers.exceptions.exceptions import (
    IncoherentStateError,
    InvalidTransitionError,
    MissingRequiredConfigError,
    OperationNotPermittedError,
    TransferConflictError,
    TransferError,
    TransferNotFoundError,
    TransferRepositoryError,
    TransferValidationError,
)

__all__ = [
    "IncoherentStateError",
    "InvalidTransitionError",
    "MissingRequiredConfigError",
    "OperationNotPermittedError",
    "TransferConflictError",
    "TransferError",
    "TransferNotFoundError",
    "TransferRepositoryError",
    "TransferValidationError",
]
