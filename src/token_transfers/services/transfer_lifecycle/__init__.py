"""Transfer attempt lifecycle operations."""

from token_transfers.services.transfer_lifecycle.transfer_lifecycle_service import (
    TransferLifecycleService,
)

__all__ = ["TransferLifecycleService"]
