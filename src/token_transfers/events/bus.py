# -*- coding: utf-8 -*-
"""Application event bus (bubus), built from Settings.events on first use."""

from __future__ import annotations

from typing import Optional

from bubus import EventBus  # type: ignore[import-untyped]

from token_transfers.config import Settings, get_settings

_event_bus: EventBus | None = None


def build_event_bus(settings: Optional[Settings] = None) -> EventBus:
    """Create a new in-process bus named and sized from settings.events."""
    bus_settings = (settings or get_settings()).events
    return EventBus(
        name=bus_settings.name,
        max_history_size=bus_settings.max_history_size,
        wal_path=None,
    )


def get_event_bus(settings: Optional[Settings] = None) -> EventBus:
    """Return the application bus singleton; settings only apply on the first call."""
    global _event_bus
    if _event_bus is None:
        _event_bus = build_event_bus(settings)
    return _event_bus


def set_event_bus(bus: EventBus | None) -> None:
    """Replace the singleton (tests, DI). None resets to lazy creation."""
    global _event_bus
    _event_bus = bus
