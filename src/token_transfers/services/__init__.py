"""Application services."""

from token_transfers.services.transfer_lifecycle import TransferLifecycleService

__all__ = ["TransferLifecycleService"]
