# -*- coding: utf-8 -*-
"""Repositories: interfaces (abstractions) and implementations (in_memory, sql)."""

from token_transfers.persistence.repositories.in_memory import InMemoryTransferAttemptRepository
from token_transfers.persistence.repositories.interfaces import (
    ITransferAttemptRepository,
    SaveOptions,
)
from token_transfers.persistence.repositories.sql import SqlTransferAttemptRepository

__all__ = [
    "ITransferAttemptRepository",
    "InMemoryTransferAttemptRepository",
    "SaveOptions",
    "SqlTransferAttemptRepository",
]
