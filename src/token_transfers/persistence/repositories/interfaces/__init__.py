# -*- coding: utf-8 -*-
"""Repository interfaces (abstractions). Implementations live in in_memory/, sql/."""

from token_transfers.persistence.repositories.interfaces.transfer_attempt_repository import (
    ITransferAttemptRepository,
    SaveOptions,
    ensure_creatable,
    ensure_overwrite_allowed,
)

__all__ = [
    "ITransferAttemptRepository",
    "SaveOptions",
    "ensure_creatable",
    "ensure_overwrite_allowed",
]
