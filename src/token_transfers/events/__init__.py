# -*- coding: utf-8 -*-
"""Event bus and event types."""

from token_transfers.events.bus import build_event_bus, get_event_bus, set_event_bus
from token_transfers.events.transfers import (
    TransferFailedEvent,
    TransferFulfilledEvent,
    TransferRequestedEvent,
)

__all__ = [
    "build_event_bus",
    "get_event_bus",
    "set_event_bus",
    "TransferFailedEvent",
    "TransferFulfilledEvent",
    "TransferRequestedEvent",
]
