# -*- coding: utf-8 -*-
"""Listing contract for transfer attempts: filter, sort and page value objects."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from token_transfers.models.transfer_attempt import (
    TransferAttempt,
    TransferErrorType,
    TransferStatus,
    parse_error_type,
    parse_status,
)
from token_transfers.utils.timestamps import to_utc
from token_transfers.utils.validation import normalize_optional

T = TypeVar("T")


class SortColumn(str, Enum):
    """Columns a listing can be ordered by."""

    REQUESTED_AT = "requested_at"
    TRANSFERRED_AT = "transferred_at"
    STATUS = "status"
    ATTEMPT = "attempt"


@dataclass(frozen=True, slots=True)
class TransferFilter:
    """Conjunction of optional criteria. Empty/None criteria match everything."""

    product_id: Optional[str] = None
    order_id: Optional[str] = None
    owner_id: Optional[str] = None
    mint_address: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    statuses: tuple[TransferStatus, ...] = ()
    error_types: tuple[TransferErrorType, ...] = ()
    has_error: Optional[bool] = None
    """True: only attempts with error_type; False: only without."""
    requested_from: Optional[datetime] = None
    """Inclusive lower bound on requested_at."""
    requested_to: Optional[datetime] = None
    """Exclusive upper bound on requested_at."""
    transferred_from: Optional[datetime] = None
    transferred_to: Optional[datetime] = None

    def __post_init__(self) -> None:
        # Accept plain strings ("error") as well as enum members; raises TransferValidationError.
        statuses = (self.statuses,) if isinstance(self.statuses, str) else self.statuses
        object.__setattr__(self, "statuses", tuple(parse_status(s) for s in statuses))
        raw_types = (self.error_types,) if isinstance(self.error_types, str) else self.error_types
        error_types = (parse_error_type(e) for e in raw_types)
        object.__setattr__(self, "error_types", tuple(e for e in error_types if e is not None))

    def matches(self, t: TransferAttempt) -> bool:
        """Return True if t satisfies every criterion set on this filter."""
        for name in ("product_id", "order_id", "owner_id", "mint_address", "from_address", "to_address"):
            wanted = normalize_optional(getattr(self, name))
            if wanted is not None and getattr(t, name) != wanted:
                return False
        if self.statuses and t.status not in self.statuses:
            return False
        if self.error_types and t.error_type not in self.error_types:
            return False
        if self.has_error is not None and (t.error_type is not None) != self.has_error:
            return False
        if self.requested_from is not None and t.requested_at < to_utc(self.requested_from):
            return False
        if self.requested_to is not None and t.requested_at >= to_utc(self.requested_to):
            return False
        if self.transferred_from is not None and (
            t.transferred_at is None or t.transferred_at < to_utc(self.transferred_from)
        ):
            return False
        if self.transferred_to is not None and (
            t.transferred_at is None or t.transferred_at >= to_utc(self.transferred_to)
        ):
            return False
        return True


@dataclass(frozen=True, slots=True)
class TransferSort:
    """Ordering for list(). Ties break on (product_id, attempt) in the same direction."""

    column: SortColumn = SortColumn.REQUESTED_AT
    descending: bool = True


@dataclass(frozen=True, slots=True)
class Page:
    """1-based page request. Normalised by normalize_page() before use."""

    number: int = 1
    per_page: Optional[int] = None


@dataclass(frozen=True, slots=True)
class PageResult(Generic[T]):
    """One page of results plus totals for the whole filtered set."""

    items: list[T] = field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    page: int = 1
    per_page: int = 0


def normalize_page(page: Optional[Page], default_per_page: int, max_per_page: int) -> tuple[int, int, int]:
    """Return (number, per_page, offset) with number >= 1 and 1 <= per_page <= max_per_page."""
    page = page or Page()
    number = page.number if page.number and page.number > 0 else 1
    per_page = page.per_page if page.per_page and page.per_page > 0 else default_per_page
    per_page = min(per_page, max_per_page)
    return number, per_page, (number - 1) * per_page


def compute_total_pages(total: int, per_page: int) -> int:
    """Number of pages needed for total items (0 when empty)."""
    if total <= 0 or per_page <= 0:
        return 0
    return math.ceil(total / per_page)
