# -*- coding: utf-8 -*-
"""Transfer lifecycle events."""

from token_transfers.events.transfers.transfer_events import (
    TransferFailedEvent,
    TransferFulfilledEvent,
    TransferRequestedEvent,
)

__all__ = ["TransferFailedEvent", "TransferFulfilledEvent", "TransferRequestedEvent"]
