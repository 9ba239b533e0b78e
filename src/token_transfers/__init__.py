"""Token transfer attempts: entity, repositories and lifecycle service."""

from token_transfers.exceptions import (
    IncoherentStateError,
    InvalidTransitionError,
    TransferConflictError,
    TransferError,
    TransferNotFoundError,
    TransferValidationError,
)
from token_transfers.models import (
    Page,
    PageResult,
    TransferAttempt,
    TransferAttemptPatch,
    TransferErrorType,
    TransferFilter,
    TransferSort,
    TransferStatus,
)
from token_transfers.persistence import (
    InMemoryTransferAttemptRepository,
    ITransferAttemptRepository,
    SaveOptions,
    SqlTransferAttemptRepository,
)
from token_transfers.services import TransferLifecycleService

__version__ = "0.1.0"

__all__ = [
    "IncoherentStateError",
    "InvalidTransitionError",
    "InMemoryTransferAttemptRepository",
    "ITransferAttemptRepository",
    "Page",
    "PageResult",
    "SaveOptions",
    "SqlTransferAttemptRepository",
    "TransferAttempt",
    "TransferAttemptPatch",
    "TransferConflictError",
    "TransferError",
    "TransferErrorType",
    "TransferFilter",
    "TransferLifecycleService",
    "TransferNotFoundError",
    "TransferSort",
    "TransferStatus",
    "TransferValidationError",
]
