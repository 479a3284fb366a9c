from p2p_transfer.infrastructure.database.database import Database, create_database
from p2p_transfer.infrastructure.database.models import (
    Base,
    TransferRecord,
    UserRecord,
)
from p2p_transfer.infrastructure.database.repository import (
    SqlAccountRepository,
    SqlTransferRepository,
)

__all__ = [
    "Base",
    "UserRecord",
    "TransferRecord",
    "SqlAccountRepository",
    "SqlTransferRepository",
    "Database",
    "create_database",
]
