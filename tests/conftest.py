"""
Pytest configuration and fixtures.
"""

import itertools
import threading
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest

from p2p_transfer.application.interfaces import Authorizer, IdGenerator, Notifier
from p2p_transfer.application.transfer_engine import TransferEngine
from p2p_transfer.domain.entities.transfer import Transfer
from p2p_transfer.domain.entities.user import User, UserRole, new_user
from p2p_transfer.domain.entities.wallet import Wallet
from p2p_transfer.domain.exceptions import NotificationError
from p2p_transfer.domain.value_objects.document import Document, DocumentType
from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.infrastructure.memory import (
    InMemoryAccountRepository,
    InMemoryTransferRepository,
)

PAYER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
PAYEE_ID = UUID("00000000-0000-0000-0000-0000000000b2")
MERCHANT_ID = UUID("00000000-0000-0000-0000-0000000000c3")

PAYER_CPF = "52998224725"
PAYEE_CPF = "11144477735"
MERCHANT_CNPJ = "11222333000181"


class SequenceIdGenerator(IdGenerator):
    """Deterministic, thread-safe ids: 00000000-...-000000001000, ...1001, ..."""

    def __init__(self, start: int = 0x1000):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()
        self.issued: list[UUID] = []

    def new_id(self) -> UUID:
        with self._lock:
            value = UUID(int=next(self._counter))
            self.issued.append(value)
        return value


class SteppingClock:
    """Each call is one second after the previous one."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class StubAuthorizer(Authorizer):
    def __init__(self, approve: bool = True, error: Exception | None = None):
        self.approve = approve
        self.error = error
        self.calls: list[Transfer] = []

    def authorize(self, transfer: Transfer) -> bool:
        self.calls.append(transfer)
        if self.error is not None:
            raise self.error
        return self.approve


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[Transfer] = []

    def notify(self, transfer: Transfer) -> None:
        if self.fail:
            raise NotificationError("messaging service down")
        self.sent.append(transfer)


def make_user(
    user_id: UUID,
    document: Document,
    role: UserRole,
    balance: int,
    email: str,
    full_name: str = "Test User",
) -> User:
    return new_user(
        id=user_id,
        full_name=full_name,
        email=email,
        password="secret",
        document=document,
        role=role,
        wallet=Wallet(Money(balance)),
    )


@pytest.fixture
def payer() -> User:
    """Common user holding 100."""
    return make_user(
        PAYER_ID,
        Document(DocumentType.CPF, PAYER_CPF),
        UserRole.COMMON,
        100,
        "ana.souza@mail.com",
        "Ana Souza",
    )


@pytest.fixture
def payee() -> User:
    """Common user with an empty wallet."""
    return make_user(
        PAYEE_ID,
        Document(DocumentType.CPF, PAYEE_CPF),
        UserRole.COMMON,
        0,
        "bruno.lima@mail.com",
        "Bruno Lima",
    )


@pytest.fixture
def merchant() -> User:
    """Merchant holding 100."""
    return make_user(
        MERCHANT_ID,
        Document(DocumentType.CNPJ, MERCHANT_CNPJ),
        UserRole.MERCHANT,
        100,
        "loja.central@mail.com",
        "Loja Central",
    )


@pytest.fixture
def accounts(
    payer: User, payee: User, merchant: User
) -> InMemoryAccountRepository:
    return InMemoryAccountRepository([payer, payee, merchant])


@pytest.fixture
def transfers() -> InMemoryTransferRepository:
    return InMemoryTransferRepository()


@pytest.fixture
def authorizer() -> StubAuthorizer:
    return StubAuthorizer(approve=True)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def id_generator() -> SequenceIdGenerator:
    return SequenceIdGenerator()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def make_engine(transfers, authorizer, notifier, id_generator, clock):
    """Engine factory; any collaborator can be overridden per test."""

    def factory(accounts, **overrides) -> TransferEngine:
        params = dict(
            accounts=accounts,
            transfers=transfers,
            authorizer=authorizer,
            notifier=notifier,
            id_generator=id_generator,
            clock=clock,
            max_attempts=3,
            retry_wait_seconds=0,
            compensation_attempts=3,
        )
        params.update(overrides)
        return TransferEngine(**params)

    return factory


@pytest.fixture
def engine(make_engine, accounts) -> TransferEngine:
    return make_engine(accounts)
