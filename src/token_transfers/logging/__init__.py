"""Logging setup (structlog)."""
