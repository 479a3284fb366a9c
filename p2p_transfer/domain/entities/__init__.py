from .transfer import Transfer, TransferStatus
from .user import User, UserRole, new_user
from .wallet import Wallet

__all__ = [
    "Transfer",
    "TransferStatus",
    "User",
    "UserRole",
    "Wallet",
    "new_user",
]
