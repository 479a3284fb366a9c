"""
In-memory repositories.

Used by the tests and the command-line demo. Each store is guarded by a lock
so concurrent engine calls observe the same per-wallet versioning as the SQL
store.
"""

import threading
from dataclasses import replace
from uuid import UUID

from structlog import get_logger

from p2p_transfer.application.interfaces import (
    AccountRepository,
    TransferRepository,
)
from p2p_transfer.domain.entities.transfer import Transfer, TransferStatus
from p2p_transfer.domain.entities.user import User
from p2p_transfer.domain.exceptions import (
    ConcurrentModification,
    DuplicateAttempt,
    RepositoryError,
    UserAlreadyExists,
    UserNotFound,
)
from p2p_transfer.domain.value_objects.money import Money

logger = get_logger(__name__)


class InMemoryAccountRepository(AccountRepository):
    """Repository for users kept in a dict keyed by user id."""

    def __init__(self, users: list[User] | None = None):
        self._users: dict[UUID, User] = {}
        self._lock = threading.Lock()
        for user in users or []:
            self.create(user)

    def create(self, user: User) -> User:
        with self._lock:
            if user.id in self._users:
                raise UserAlreadyExists(f"User {user.id} already exists")
            for existing in self._users.values():
                if existing.document == user.document:
                    raise UserAlreadyExists(
                        f"Document {user.document} already registered"
                    )
                if existing.email == user.email:
                    raise UserAlreadyExists(
                        f"Email {user.email} already registered"
                    )
            self._users[user.id] = user
        logger.debug(f"User {user.id} stored")
        return user

    def find_by_id(self, user_id: UUID) -> User:
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def update_wallet(
        self, user_id: UUID, money: Money, expected_version: int
    ) -> int:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFound(user_id)
            if user.wallet.version != expected_version:
                raise ConcurrentModification(
                    user_id, expected_version, user.wallet.version
                )
            new_version = expected_version + 1
            wallet = replace(user.wallet, money=money, version=new_version)
            self._users[user_id] = user.with_wallet(wallet)
        return new_version

    def balance_of(self, user_id: UUID) -> int:
        return self.find_by_id(user_id).wallet.balance

    def total_balance(self) -> int:
        with self._lock:
            return sum(u.wallet.balance for u in self._users.values())


class InMemoryTransferRepository(TransferRepository):
    """Repository for transfer attempts; records are never removed."""

    def __init__(self):
        self._transfers: dict[UUID, Transfer] = {}
        self._lock = threading.Lock()

    def create(self, transfer: Transfer) -> Transfer:
        with self._lock:
            if transfer.id in self._transfers:
                raise RepositoryError(f"Transfer {transfer.id} already exists")
            if transfer.status.holds_key:
                for other in self._transfers.values():
                    if (
                        other.idempotency_key == transfer.idempotency_key
                        and other.status.holds_key
                    ):
                        raise DuplicateAttempt(transfer.idempotency_key, other.id)
            self._transfers[transfer.id] = transfer
        return transfer

    def update_status(
        self, transfer_id: UUID, status: TransferStatus
    ) -> Transfer:
        with self._lock:
            transfer = self._transfers.get(transfer_id)
            if transfer is None:
                raise RepositoryError(f"Unknown transfer {transfer_id}")
            updated = transfer.transition_to(status)
            self._transfers[transfer_id] = updated
        return updated

    def find_by_id(self, transfer_id: UUID) -> Transfer | None:
        with self._lock:
            return self._transfers.get(transfer_id)

    def find_by_idempotency_key(self, key: UUID) -> list[Transfer]:
        with self._lock:
            attempts = [
                t for t in self._transfers.values() if t.idempotency_key == key
            ]
        return sorted(attempts, key=lambda t: t.created_at)

    def all(self) -> list[Transfer]:
        with self._lock:
            return list(self._transfers.values())
