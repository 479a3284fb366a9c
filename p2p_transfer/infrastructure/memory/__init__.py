from .repository import InMemoryAccountRepository, InMemoryTransferRepository

__all__ = [
    "InMemoryAccountRepository",
    "InMemoryTransferRepository",
]
