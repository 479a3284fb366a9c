"""
Tests for the Wallet, User and Transfer entities.
"""

from uuid import UUID, uuid4

import pytest

from p2p_transfer.domain.entities.transfer import Transfer, TransferStatus
from p2p_transfer.domain.entities.user import User, UserRole, new_user
from p2p_transfer.domain.entities.wallet import Wallet
from p2p_transfer.domain.exceptions import (
    CurrencyMismatch,
    InsufficientFunds,
    InvalidIdentifier,
    InvalidRole,
    InvalidStatusTransition,
    InvalidTransfer,
)
from p2p_transfer.domain.value_objects.document import Document
from p2p_transfer.domain.value_objects.money import Currency, Money

from .conftest import PAYEE_ID, PAYER_CPF, PAYER_ID


class TestWallet:
    def test_empty_wallet(self) -> None:
        wallet = Wallet.empty(Currency.USD)
        assert wallet.balance == 0
        assert wallet.currency is Currency.USD
        assert wallet.version == 0

    def test_credit_and_debit_keep_version(self) -> None:
        wallet = Wallet(Money(100), version=7)
        assert wallet.credit(Money(50)) == Wallet(Money(150), version=7)
        assert wallet.debit(Money(100)) == Wallet(Money(0), version=7)

    def test_debit_never_goes_negative(self) -> None:
        with pytest.raises(InsufficientFunds):
            Wallet(Money(100)).debit(Money(101))

    def test_currency_must_match(self) -> None:
        with pytest.raises(CurrencyMismatch):
            Wallet(Money(100, Currency.BRL)).credit(Money(1, Currency.USD))


class TestUser:
    def test_only_common_users_can_transfer(
        self, payer: User, merchant: User
    ) -> None:
        assert payer.can_transfer()
        assert not merchant.can_transfer()

    def test_deposit_and_withdraw_return_new_users(self, payer: User) -> None:
        richer = payer.deposit(Money(50))
        poorer = payer.withdraw(Money(30))

        assert richer.balance == Money(150)
        assert poorer.balance == Money(70)
        assert payer.balance == Money(100)

    def test_withdraw_more_than_balance(self, payer: User) -> None:
        with pytest.raises(InsufficientFunds):
            payer.withdraw(Money(1000))

    def test_new_user_defaults_to_empty_wallet(self) -> None:
        user = new_user(
            id=str(uuid4()),
            full_name="  Carla   Dias ",
            email="carla.dias@mail.com",
            password="secret",
            document=Document("CPF", PAYER_CPF),
            role="COMMON",
        )
        assert isinstance(user.id, UUID)
        assert user.full_name == "Carla Dias"
        assert user.wallet == Wallet.empty()

    def test_invalid_role(self) -> None:
        with pytest.raises(InvalidRole):
            new_user(
                id=uuid4(),
                full_name="Carla Dias",
                email="carla.dias@mail.com",
                password="secret",
                document=Document("CPF", PAYER_CPF),
                role="ADMIN",
            )

    def test_invalid_id(self) -> None:
        with pytest.raises(InvalidIdentifier):
            new_user(
                id="not-a-uuid",
                full_name="Carla Dias",
                email="carla.dias@mail.com",
                password="secret",
                document=Document("CPF", PAYER_CPF),
                role=UserRole.COMMON,
            )

    def test_password_is_not_rendered(self, payer: User) -> None:
        assert "secret" not in repr(payer)
        assert payer.password.get_secret_value() == "secret"


class TestTransfer:
    def _transfer(self, **overrides) -> Transfer:
        params = dict(
            id=UUID(int=1),
            payer_id=PAYER_ID,
            payee_id=PAYEE_ID,
            value=Money(100),
        )
        params.update(overrides)
        return Transfer(**params)

    def test_defaults(self) -> None:
        transfer = self._transfer()
        assert transfer.status is TransferStatus.PENDING
        assert transfer.idempotency_key == transfer.id

    def test_explicit_idempotency_key(self) -> None:
        transfer = self._transfer(idempotency_key=UUID(int=9))
        assert transfer.idempotency_key == UUID(int=9)

    @pytest.mark.parametrize(
        "status, holds",
        [
            (TransferStatus.PENDING, True),
            (TransferStatus.AUTHORIZED, True),
            (TransferStatus.COMPLETED, True),
            (TransferStatus.FAILED, False),
            (TransferStatus.REJECTED, False),
        ],
    )
    def test_statuses_holding_the_key(self, status, holds) -> None:
        assert status.holds_key is holds

    def test_self_transfer_is_invalid(self) -> None:
        with pytest.raises(InvalidTransfer):
            self._transfer(payee_id=PAYER_ID)

    def test_zero_value_is_invalid(self) -> None:
        with pytest.raises(InvalidTransfer):
            self._transfer(value=Money(0))

    @pytest.mark.parametrize(
        "target",
        [
            TransferStatus.AUTHORIZED,
            TransferStatus.REJECTED,
            TransferStatus.COMPLETED,
            TransferStatus.FAILED,
        ],
    )
    def test_pending_moves_anywhere(self, target: TransferStatus) -> None:
        assert self._transfer().transition_to(target).status is target

    @pytest.mark.parametrize(
        "terminal",
        [TransferStatus.REJECTED, TransferStatus.COMPLETED, TransferStatus.FAILED],
    )
    def test_terminal_statuses_are_final(self, terminal: TransferStatus) -> None:
        transfer = self._transfer().transition_to(terminal)
        assert terminal.is_terminal
        with pytest.raises(InvalidStatusTransition):
            transfer.transition_to(TransferStatus.PENDING)
        with pytest.raises(InvalidStatusTransition):
            transfer.transition_to(TransferStatus.COMPLETED)

    def test_authorized_can_complete_or_fail(self) -> None:
        authorized = self._transfer().transition_to(TransferStatus.AUTHORIZED)
        assert not TransferStatus.AUTHORIZED.is_terminal
        assert authorized.transition_to(TransferStatus.COMPLETED).status is (
            TransferStatus.COMPLETED
        )
        with pytest.raises(InvalidStatusTransition):
            authorized.transition_to(TransferStatus.REJECTED)
