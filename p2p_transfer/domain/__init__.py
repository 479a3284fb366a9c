"""
Domain layer containing business entities, value objects and errors.

This layer is framework-agnostic and holds every balance invariant.
"""

from .entities.transfer import Transfer, TransferStatus
from .entities.user import User, UserRole, new_user
from .entities.wallet import Wallet
from .value_objects.document import Document, DocumentType
from .value_objects.money import Currency, Money

__all__ = [
    # Entities
    "Transfer",
    "User",
    "Wallet",
    "new_user",
    # Enums
    "Currency",
    "DocumentType",
    "TransferStatus",
    "UserRole",
    # Value Objects
    "Document",
    "Money",
]
