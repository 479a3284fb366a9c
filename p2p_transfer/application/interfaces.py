"""
Ports consumed by the transfer engine and the use cases.

Adapters live under ``p2p_transfer.infrastructure``; any of them can be
swapped for another implementation of the same interface.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from p2p_transfer.domain.entities.transfer import Transfer, TransferStatus
from p2p_transfer.domain.entities.user import User
from p2p_transfer.domain.value_objects.money import Money

from .dto import TransferOutput, UserOutput


class AccountRepository(ABC):
    """Lookup and persistence of users and their wallets."""

    @abstractmethod
    def find_by_id(self, user_id: UUID) -> User:
        """
        Load a user with the current wallet and its version.

        Raises:
            UserNotFound: If no user has this id.
            RepositoryError: If the store cannot be read.
        """
        pass

    @abstractmethod
    def update_wallet(
        self, user_id: UUID, money: Money, expected_version: int
    ) -> int:
        """
        Store a new wallet balance if the wallet is still at
        ``expected_version``.

        Returns:
            The new wallet version.

        Raises:
            ConcurrentModification: The stored version differs.
            UserNotFound: If no user has this id.
            RepositoryError: If the write fails.
        """
        pass

    @abstractmethod
    def create(self, user: User) -> User:
        """
        Register a new user.

        Raises:
            UserAlreadyExists: Duplicate id, document or email.
            RepositoryError: If the write fails.
        """
        pass


class TransferRepository(ABC):
    """Append-only persistence of transfer attempts."""

    @abstractmethod
    def create(self, transfer: Transfer) -> Transfer:
        """
        Store a new attempt.

        At most one attempt per idempotency key may be PENDING, AUTHORIZED or
        COMPLETED. The check and the insert are one atomic step.

        Raises:
            DuplicateAttempt: Another attempt already holds the key.
            RepositoryError: Duplicate id or failed write.
        """
        pass

    @abstractmethod
    def update_status(self, transfer_id: UUID, status: TransferStatus) -> Transfer:
        """
        Move a stored transfer to ``status``.

        Raises:
            InvalidStatusTransition: The stored status is terminal.
            RepositoryError: Unknown id or failed write.
        """
        pass

    @abstractmethod
    def find_by_id(self, transfer_id: UUID) -> Transfer | None:
        pass

    @abstractmethod
    def find_by_idempotency_key(self, key: UUID) -> list[Transfer]:
        """Return every attempt recorded under ``key``, oldest first."""
        pass


class Authorizer(ABC):
    """Third-party approval of a persisted transfer."""

    @abstractmethod
    def authorize(self, transfer: Transfer) -> bool:
        """
        Returns:
            True if the transfer is approved.

        Raises:
            AuthorizerError: The decision service could not answer.
        """
        pass


class Notifier(ABC):
    """Best-effort delivery of a completion event."""

    @abstractmethod
    def notify(self, transfer: Transfer) -> None:
        """
        Raises:
            NotificationError: The event was not delivered.
        """
        pass


class IdGenerator(ABC):
    @abstractmethod
    def new_id(self) -> UUID:
        pass


class TransferPresenter(ABC):
    """Pure shaping of a transfer for the caller."""

    @abstractmethod
    def present(self, transfer: Transfer, notified: bool = True) -> TransferOutput:
        pass


class UserPresenter(ABC):
    @abstractmethod
    def present(self, user: User) -> UserOutput:
        pass
