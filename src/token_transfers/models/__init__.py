# -*- coding: utf-8 -*-
"""Domain models."""

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
    ALLOWED_TRANSITIONS,
    TransferAttempt,
    TransferAttemptPatch,
    TransferErrorType,
    TransferStatus,
    can_transition,
    parse_error_type,
    parse_status,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Page",
    "PageResult",
    "SortColumn",
    "TransferAttempt",
    "TransferAttemptPatch",
    "TransferErrorType",
    "TransferFilter",
    "TransferSort",
    "TransferStatus",
    "can_transition",
    "compute_total_pages",
    "normalize_page",
    "parse_error_type",
    "parse_status",
]
