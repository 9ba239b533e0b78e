"""SQLAlchemy repository implementations."""

from token_transfers.persistence.repositories.sql.db import SessionProvider, create_db_engine
from token_transfers.persistence.repositories.sql.transfer_attempt_repository import (
    SqlTransferAttemptRepository,
)

__all__ = ["SessionProvider", "SqlTransferAttemptRepository", "create_db_engine"]
