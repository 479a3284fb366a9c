"""
Repository pattern for database access.

Every method runs in its own short transaction: the transfer engine never
relies on two writes committing together.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from structlog import get_logger

from p2p_transfer.application.interfaces import (
    AccountRepository,
    TransferRepository,
)
from p2p_transfer.domain.entities.transfer import Transfer, TransferStatus
from p2p_transfer.domain.entities.user import User
from p2p_transfer.domain.entities.wallet import Wallet
from p2p_transfer.domain.exceptions import (
    ConcurrentModification,
    DuplicateAttempt,
    RepositoryError,
    UserAlreadyExists,
    UserNotFound,
)
from p2p_transfer.domain.value_objects.document import Document
from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.utils.datetime_helpers import as_utc, utc_now

from .database import Database
from .models import TransferRecord, UserRecord

logger = get_logger(__name__)


def _user_to_domain(record: UserRecord) -> User:
    return User(
        id=record.id,
        full_name=record.full_name,
        email=record.email,
        password=record.password,
        document=Document(record.document_type, record.document_number),
        role=record.role,
        wallet=Wallet(
            money=Money(record.balance, record.currency),
            version=record.wallet_version,
        ),
        created_at=as_utc(record.created_at),
    )


def _transfer_to_domain(record: TransferRecord) -> Transfer:
    return Transfer(
        id=record.id,
        payer_id=record.payer_id,
        payee_id=record.payee_id,
        value=Money(record.amount, record.currency),
        created_at=as_utc(record.created_at),
        status=TransferStatus(record.status),
        idempotency_key=record.idempotency_key,
    )


class SqlAccountRepository(AccountRepository):
    """Repository for users and wallet balances."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, user: User) -> User:
        """
        Insert a new user with its starting wallet.

        Args:
            user: Domain user entity
        """
        orm_obj = UserRecord(
            id=str(user.id),
            full_name=user.full_name,
            email=user.email,
            password=user.password.get_secret_value(),
            document_type=user.document.type.value,
            document_number=user.document.number,
            role=user.role.value,
            balance=user.wallet.balance,
            currency=user.wallet.currency.value,
            wallet_version=user.wallet.version,
            created_at=user.created_at,
        )
        try:
            with self.database.session_scope() as session:
                session.add(orm_obj)
        except IntegrityError as e:
            logger.info(f"Duplicate user rejected: {user.id}")
            raise UserAlreadyExists(
                f"User {user.id} conflicts with an existing id, email or document"
            ) from e
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not store user {user.id}") from e
        return user

    def find_by_id(self, user_id: UUID) -> User:
        try:
            with self.database.session_scope() as session:
                record = session.get(UserRecord, str(user_id))
                if record is None:
                    raise UserNotFound(user_id)
                return _user_to_domain(record)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not load user {user_id}") from e

    def update_wallet(
        self, user_id: UUID, money: Money, expected_version: int
    ) -> int:
        """
        Compare-and-set the wallet balance.

        The UPDATE only matches the row while ``wallet_version`` still equals
        ``expected_version``; no match means another writer got there first.
        """
        new_version = expected_version + 1
        stmt = (
            update(UserRecord)
            .where(
                UserRecord.id == str(user_id),
                UserRecord.wallet_version == expected_version,
            )
            .values(
                balance=money.amount,
                currency=money.currency.value,
                wallet_version=new_version,
            )
        )
        try:
            with self.database.session_scope() as session:
                result = session.execute(stmt)
                if result.rowcount == 1:
                    return new_version

                actual = session.scalar(
                    select(UserRecord.wallet_version).where(
                        UserRecord.id == str(user_id)
                    )
                )
                if actual is None:
                    raise UserNotFound(user_id)
                raise ConcurrentModification(user_id, expected_version, actual)
        except SQLAlchemyError as e:
            logger.error(f"Wallet write failed for user {user_id}: {e}")
            raise RepositoryError(
                f"Could not update wallet of user {user_id}"
            ) from e


class SqlTransferRepository(TransferRepository):
    """Repository for transfer attempts."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, transfer: Transfer) -> Transfer:
        key = str(transfer.idempotency_key)
        orm_obj = TransferRecord(
            id=str(transfer.id),
            idempotency_key=key,
            active_key=key if transfer.status.holds_key else None,
            payer_id=str(transfer.payer_id),
            payee_id=str(transfer.payee_id),
            amount=transfer.value.amount,
            currency=transfer.value.currency.value,
            status=transfer.status.value,
            created_at=transfer.created_at,
            updated_at=utc_now(),
        )
        try:
            with self.database.session_scope() as session:
                session.add(orm_obj)
        except IntegrityError as e:
            holder = self._key_holder(transfer.idempotency_key)
            if holder is not None:
                logger.info(f"Attempt {transfer.id} rejected, key held by {holder}")
                raise DuplicateAttempt(transfer.idempotency_key, holder) from e
            raise RepositoryError(
                f"Could not store transfer {transfer.id}"
            ) from e
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Could not store transfer {transfer.id}"
            ) from e
        return transfer

    def _key_holder(self, key: UUID) -> UUID | None:
        stmt = select(TransferRecord.id).where(
            TransferRecord.active_key == str(key)
        )
        try:
            with self.database.session_scope() as session:
                holder = session.scalars(stmt).first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Could not check key {key}") from e
        return UUID(holder) if holder else None

    def update_status(
        self, transfer_id: UUID, status: TransferStatus
    ) -> Transfer:
        try:
            with self.database.session_scope() as session:
                record = session.get(TransferRecord, str(transfer_id))
                if record is None:
                    raise RepositoryError(f"Unknown transfer {transfer_id}")
                updated = _transfer_to_domain(record).transition_to(status)
                record.status = updated.status.value
                if not updated.status.holds_key:
                    record.active_key = None
                return updated
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Could not update transfer {transfer_id}"
            ) from e

    def find_by_id(self, transfer_id: UUID) -> Transfer | None:
        try:
            with self.database.session_scope() as session:
                record = session.get(TransferRecord, str(transfer_id))
                return _transfer_to_domain(record) if record else None
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Could not load transfer {transfer_id}"
            ) from e

    def find_by_idempotency_key(self, key: UUID) -> list[Transfer]:
        stmt = (
            select(TransferRecord)
            .where(TransferRecord.idempotency_key == str(key))
            .order_by(TransferRecord.created_at)
        )
        try:
            with self.database.session_scope() as session:
                return [
                    _transfer_to_domain(r) for r in session.scalars(stmt).all()
                ]
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Could not load transfers for key {key}"
            ) from e
