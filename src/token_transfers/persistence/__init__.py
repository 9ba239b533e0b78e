"""Persistence layer (repositories, etc.)."""

from token_transfers.persistence.repositories import (
    InMemoryTransferAttemptRepository,
    ITransferAttemptRepository,
    SaveOptions,
    SqlTransferAttemptRepository,
)

__all__ = [
    "ITransferAttemptRepository",
    "InMemoryTransferAttemptRepository",
    "SaveOptions",
    "SqlTransferAttemptRepository",
]
