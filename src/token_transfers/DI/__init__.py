"""Dependency injection."""

from token_transfers.DI.container import Container

__all__ = ["Container"]
