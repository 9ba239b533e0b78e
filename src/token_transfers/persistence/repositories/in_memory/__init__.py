"""In-memory repository implementations."""

from token_transfers.persistence.repositories.in_memory.transfer_attempt_repository import (
    InMemoryTransferAttemptRepository,
)

__all__ = ["InMemoryTransferAttemptRepository"]
