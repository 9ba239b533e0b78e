# -*- coding: utf-8 -*-
"""Transfer attempt lifecycle events (bubus BaseEvent)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bubus import BaseEvent  # type: ignore[import-untyped]


class TransferRequestedEvent(BaseEvent[None]):
    """Emitted when a new attempt has been persisted in status requested."""

    product_id: str
    attempt: int
    mint_address: str
    from_address: str
    to_address: str
    requested_at: datetime
    order_id: Optional[str] = None
    owner_id: Optional[str] = None
    retry_of: Optional[int] = None
    """Number of the failed attempt this one retries, if any."""


class TransferFulfilledEvent(BaseEvent[None]):
    """Emitted when an attempt has been confirmed on chain."""

    product_id: str
    attempt: int
    to_address: str
    transferred_at: datetime
    tx_signature: Optional[str] = None


class TransferFailedEvent(BaseEvent[None]):
    """Emitted when an attempt has been marked as failed."""

    product_id: str
    attempt: int
    error_type: str
    error_message: Optional[str] = None
