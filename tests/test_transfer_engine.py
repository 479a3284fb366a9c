"""
Tests for the transfer engine.

Covers the happy path, every abort path with its compensation, optimistic
concurrency retries, cancellation and idempotent retries.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import UUID

import pytest

from p2p_transfer.application.cancellation import CancellationToken
from p2p_transfer.domain.entities.transfer import Transfer, TransferStatus
from p2p_transfer.domain.exceptions import (
    AuthorizerError,
    ConcurrentModification,
    InsufficientFunds,
    InvalidTransfer,
    PersistenceFailure,
    ReconciliationRequired,
    RepositoryError,
    TransferCancelled,
    TransferNotAuthorized,
    UserNotFound,
)
from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.infrastructure.memory import (
    InMemoryAccountRepository,
    InMemoryTransferRepository,
)

from .conftest import (
    MERCHANT_ID,
    PAYEE_ID,
    PAYER_ID,
    RecordingNotifier,
    StubAuthorizer,
)

KEY = UUID("00000000-0000-0000-0000-00000000beef")


class FailingWalletRepository(InMemoryAccountRepository):
    """
    Allows ``allowed_writes[user_id]`` wallet writes for a user, then fails
    every following one with RepositoryError.
    """

    def __init__(self, users, allowed_writes: dict[UUID, int]):
        super().__init__(users)
        self.allowed_writes = dict(allowed_writes)

    def update_wallet(self, user_id, money, expected_version):
        if user_id in self.allowed_writes:
            if self.allowed_writes[user_id] <= 0:
                raise RepositoryError(f"disk full for {user_id}")
            self.allowed_writes[user_id] -= 1
        return super().update_wallet(user_id, money, expected_version)


class RacingWalletRepository(InMemoryAccountRepository):
    """
    Before each of the first ``races`` writes to ``user_id`` another writer
    deposits ``deposit`` into the same wallet, so the engine's write conflicts.
    """

    def __init__(self, users, user_id: UUID, races: int, deposit: int = 50):
        super().__init__(users)
        self.user_id = user_id
        self.races = races
        self.deposit = deposit

    def update_wallet(self, user_id, money, expected_version):
        if user_id == self.user_id and self.races > 0:
            self.races -= 1
            current = self.find_by_id(user_id).wallet
            super().update_wallet(
                user_id,
                current.money + Money(self.deposit),
                current.version,
            )
        return super().update_wallet(user_id, money, expected_version)


class HookedWalletRepository(InMemoryAccountRepository):
    """Calls ``after_write(user_id)`` after every successful wallet write."""

    def __init__(self, users, after_write):
        super().__init__(users)
        self.after_write = after_write

    def update_wallet(self, user_id, money, expected_version):
        version = super().update_wallet(user_id, money, expected_version)
        self.after_write(user_id)
        return version


class FailingCompletionRepository(InMemoryTransferRepository):
    def update_status(self, transfer_id, status):
        if status == TransferStatus.COMPLETED:
            raise RepositoryError("cannot write status")
        return super().update_status(transfer_id, status)


class FailingCreateRepository(InMemoryTransferRepository):
    def create(self, transfer):
        raise RepositoryError("transfers table locked")


class MissingPayeeRepository(InMemoryAccountRepository):
    """The payee disappears between its load and its wallet write."""

    def update_wallet(self, user_id, money, expected_version):
        if user_id == PAYEE_ID:
            raise UserNotFound(user_id)
        return super().update_wallet(user_id, money, expected_version)


class UnavailableStatusRepository(InMemoryTransferRepository):
    """Fails the next ``failures`` status writes with RepositoryError."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures

    def update_status(self, transfer_id, status):
        if self.failures > 0:
            self.failures -= 1
            raise RepositoryError("status store unavailable")
        return super().update_status(transfer_id, status)


class LockstepKeyLookupRepository(InMemoryTransferRepository):
    """Lets key lookups return only once two callers have made one."""

    def __init__(self):
        super().__init__()
        self.barrier = threading.Barrier(2, timeout=5)

    def find_by_idempotency_key(self, key):
        attempts = super().find_by_idempotency_key(key)
        self.barrier.wait()
        return attempts


def balances(accounts) -> tuple[int, int]:
    return accounts.balance_of(PAYER_ID), accounts.balance_of(PAYEE_ID)


class TestScenarios:
    """The reference scenarios of the transfer flow."""

    def test_a_successful_transfer(self, engine, accounts, transfers, notifier):
        """Payer 100, payee 0, transfer 100: payer 0, payee 100, COMPLETED."""
        result = engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (0, 100)
        assert result.transfer.status is TransferStatus.COMPLETED
        assert result.notified
        assert transfers.find_by_id(result.transfer.id).status is (
            TransferStatus.COMPLETED
        )
        assert notifier.sent == [result.transfer]

    def test_b_insufficient_funds(self, engine, accounts, transfers, authorizer):
        """Transfer 1000 from a balance of 100 changes nothing."""
        with pytest.raises(InsufficientFunds):
            engine.execute(PAYER_ID, PAYEE_ID, Money(1000))

        assert balances(accounts) == (100, 0)
        assert transfers.all() == []
        assert authorizer.calls == []

    def test_c_merchant_cannot_send(self, engine, accounts, transfers):
        """A merchant payer is refused before any money moves."""
        with pytest.raises(TransferNotAuthorized):
            engine.execute(MERCHANT_ID, PAYEE_ID, Money(50))

        assert accounts.balance_of(MERCHANT_ID) == 100
        assert accounts.balance_of(PAYEE_ID) == 0
        assert transfers.all() == []

    def test_d_payee_write_fails(self, payer, payee, merchant, make_engine, transfers):
        """Payer debit succeeds, payee write fails: payer restored, FAILED."""
        accounts = FailingWalletRepository(
            [payer, payee, merchant], allowed_writes={PAYEE_ID: 0}
        )
        engine = make_engine(accounts)

        with pytest.raises(PersistenceFailure) as exc_info:
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (100, 0)
        [transfer] = transfers.all()
        assert transfer.status is TransferStatus.FAILED
        assert exc_info.value.transfer_id == transfer.id
        assert exc_info.value.idempotency_key == transfer.idempotency_key

    def test_e_authorizer_denies(self, accounts, make_engine, transfers, notifier):
        """Denial after both wallet writes restores both wallets, REJECTED."""
        engine = make_engine(accounts, authorizer=StubAuthorizer(approve=False))

        with pytest.raises(TransferNotAuthorized):
            engine.execute(PAYER_ID, PAYEE_ID, Money(60))

        assert balances(accounts) == (100, 0)
        [transfer] = transfers.all()
        assert transfer.status is TransferStatus.REJECTED
        assert notifier.sent == []


class TestInvariants:
    def test_money_is_conserved_across_outcomes(self, accounts, make_engine):
        """Successes and failures alike keep the total balance constant."""
        total = accounts.total_balance()
        engine = make_engine(accounts)
        denying = make_engine(accounts, authorizer=StubAuthorizer(approve=False))

        engine.execute(PAYER_ID, PAYEE_ID, Money(30))
        with pytest.raises(TransferNotAuthorized):
            denying.execute(PAYER_ID, PAYEE_ID, Money(30))
        with pytest.raises(InsufficientFunds):
            engine.execute(PAYER_ID, PAYEE_ID, Money(500))
        engine.execute(PAYEE_ID, PAYER_ID, Money(10))

        assert accounts.total_balance() == total
        assert balances(accounts) == (80, 20)

    def test_merchant_is_never_debited(self, engine, accounts):
        for amount in (1, 50, 100):
            with pytest.raises(TransferNotAuthorized):
                engine.execute(MERCHANT_ID, PAYER_ID, Money(amount))
        assert accounts.balance_of(MERCHANT_ID) == 100

    def test_merchant_can_receive(self, engine, accounts):
        engine.execute(PAYER_ID, MERCHANT_ID, Money(40))
        assert accounts.balance_of(MERCHANT_ID) == 140

    def test_self_transfer_is_rejected(self, engine, transfers):
        with pytest.raises(InvalidTransfer):
            engine.execute(PAYER_ID, PAYER_ID, Money(10))
        assert transfers.all() == []

    def test_zero_value_is_rejected(self, engine):
        with pytest.raises(InvalidTransfer):
            engine.execute(PAYER_ID, PAYEE_ID, Money(0))

    def test_unknown_users(self, engine, accounts):
        with pytest.raises(UserNotFound):
            engine.execute(UUID(int=404), PAYEE_ID, Money(10))
        with pytest.raises(UserNotFound):
            engine.execute(PAYER_ID, UUID(int=404), Money(10))
        assert balances(accounts) == (100, 0)

    def test_first_attempt_is_keyed_by_its_own_id(self, engine):
        result = engine.execute(PAYER_ID, PAYEE_ID, Money(10))
        assert result.transfer.idempotency_key == result.transfer.id


class TestCompensation:
    def test_authorizer_error_counts_as_denial(
        self, accounts, make_engine, transfers
    ):
        engine = make_engine(
            accounts, authorizer=StubAuthorizer(error=AuthorizerError("timeout"))
        )

        with pytest.raises(TransferNotAuthorized) as exc_info:
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert isinstance(exc_info.value.__cause__, AuthorizerError)
        assert balances(accounts) == (100, 0)
        assert transfers.all()[0].status is TransferStatus.REJECTED

    def test_completion_write_failure_reverses_wallets(self, accounts, make_engine):
        transfers = FailingCompletionRepository()
        engine = make_engine(accounts, transfers=transfers)

        with pytest.raises(PersistenceFailure):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (100, 0)
        assert transfers.all()[0].status is TransferStatus.FAILED

    def test_transfer_record_failure_moves_nothing(self, accounts, make_engine):
        engine = make_engine(accounts, transfers=FailingCreateRepository())

        with pytest.raises(PersistenceFailure) as exc_info:
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert exc_info.value.retryable
        assert balances(accounts) == (100, 0)

    def test_payer_write_failure_moves_nothing(
        self, payer, payee, merchant, make_engine, transfers
    ):
        accounts = FailingWalletRepository(
            [payer, payee, merchant], allowed_writes={PAYER_ID: 0}
        )
        engine = make_engine(accounts)

        with pytest.raises(PersistenceFailure):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (100, 0)
        assert transfers.all()[0].status is TransferStatus.FAILED

    def test_failed_compensation_requires_reconciliation(
        self, payer, payee, merchant, make_engine
    ):
        """Payer debited, payee write fails, re-credit fails too."""
        accounts = FailingWalletRepository(
            [payer, payee, merchant],
            allowed_writes={PAYER_ID: 1, PAYEE_ID: 0},
        )
        engine = make_engine(accounts)

        with pytest.raises(ReconciliationRequired) as exc_info:
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        error = exc_info.value
        assert error.user_id == PAYER_ID
        assert error.expected_balance == 100
        assert error.observed_balance == 0
        assert not error.retryable

    def test_compensation_survives_concurrent_deposit(
        self, payer, payee, merchant, make_engine
    ):
        """Reversal applies a delta, so a deposit made meanwhile is kept."""
        accounts = RacingWalletRepository(
            [payer, payee, merchant], user_id=PAYEE_ID, races=0
        )

        class DepositingAuthorizer(StubAuthorizer):
            def authorize(self, transfer):
                current = accounts.find_by_id(PAYER_ID).wallet
                accounts.update_wallet(
                    PAYER_ID, current.money + Money(25), current.version
                )
                return False

        engine = make_engine(accounts, authorizer=DepositingAuthorizer())

        with pytest.raises(TransferNotAuthorized):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (125, 0)

    def test_payee_missing_at_write_re_credits_payer(
        self, payer, payee, merchant, make_engine, transfers
    ):
        accounts = MissingPayeeRepository([payer, payee, merchant])
        engine = make_engine(accounts)

        with pytest.raises(UserNotFound):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (100, 0)
        assert transfers.all()[0].status is TransferStatus.FAILED

    def test_status_write_is_retried_after_abort(
        self, payer, payee, merchant, make_engine
    ):
        accounts = FailingWalletRepository(
            [payer, payee, merchant], allowed_writes={PAYER_ID: 0}
        )
        transfers = UnavailableStatusRepository(failures=2)
        engine = make_engine(accounts, transfers=transfers)

        with pytest.raises(PersistenceFailure):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (100, 0)
        assert transfers.all()[0].status is TransferStatus.FAILED


class TestNotification:
    def test_notification_failure_is_not_fatal(
        self, accounts, make_engine, transfers
    ):
        engine = make_engine(accounts, notifier=RecordingNotifier(fail=True))

        result = engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert result.transfer.status is TransferStatus.COMPLETED
        assert not result.notified
        assert result.notification_error is not None
        assert balances(accounts) == (0, 100)
        assert transfers.find_by_id(result.transfer.id).status is (
            TransferStatus.COMPLETED
        )


class TestConcurrentModification:
    def test_conflict_is_retried_with_fresh_state(
        self, payer, payee, merchant, make_engine, transfers
    ):
        accounts = RacingWalletRepository(
            [payer, payee, merchant], user_id=PAYER_ID, races=1
        )
        engine = make_engine(accounts)

        result = engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        # 100 + 50 deposited by the racing writer - 100 transferred
        assert balances(accounts) == (50, 100)
        attempts = sorted(transfers.all(), key=lambda t: t.created_at)
        assert [a.status for a in attempts] == [
            TransferStatus.FAILED,
            TransferStatus.COMPLETED,
        ]
        assert attempts[0].idempotency_key == attempts[1].idempotency_key
        assert attempts[0].id != attempts[1].id
        assert result.transfer == attempts[1]

    def test_payee_conflict_re_credits_payer_before_retry(
        self, payer, payee, merchant, make_engine
    ):
        accounts = RacingWalletRepository(
            [payer, payee, merchant], user_id=PAYEE_ID, races=1
        )
        engine = make_engine(accounts)

        engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert balances(accounts) == (0, 150)

    def test_exhausted_retries_raise_persistence_failure(
        self, payer, payee, merchant, make_engine, transfers
    ):
        accounts = RacingWalletRepository(
            [payer, payee, merchant], user_id=PAYER_ID, races=10
        )
        engine = make_engine(accounts, max_attempts=3)

        with pytest.raises(PersistenceFailure) as exc_info:
            engine.execute(PAYER_ID, PAYEE_ID, Money(100))

        assert isinstance(exc_info.value.__cause__, ConcurrentModification)
        # three racing deposits landed, the transfer itself never did
        assert balances(accounts) == (250, 0)
        assert len(transfers.all()) == 3
        assert all(t.status is TransferStatus.FAILED for t in transfers.all())


class TestCancellation:
    def test_cancelled_before_start(self, engine, accounts, transfers):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(TransferCancelled):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100), cancellation=token)

        assert balances(accounts) == (100, 0)
        assert transfers.all() == []

    def test_expired_deadline(self, engine, accounts):
        with pytest.raises(TransferCancelled):
            engine.execute(
                PAYER_ID,
                PAYEE_ID,
                Money(100),
                cancellation=CancellationToken.with_deadline(0),
            )
        assert balances(accounts) == (100, 0)

    def test_cancelled_after_wallet_writes_is_compensated(
        self, payer, payee, merchant, make_engine, transfers, authorizer
    ):
        token = CancellationToken()

        def cancel_after_payee(user_id):
            if user_id == PAYEE_ID:
                token.cancel()

        accounts = HookedWalletRepository(
            [payer, payee, merchant], after_write=cancel_after_payee
        )
        engine = make_engine(accounts)

        with pytest.raises(TransferCancelled):
            engine.execute(PAYER_ID, PAYEE_ID, Money(100), cancellation=token)

        assert balances(accounts) == (100, 0)
        assert transfers.all()[0].status is TransferStatus.FAILED
        assert authorizer.calls == []


class TestIdempotentRetry:
    def test_completed_key_is_not_executed_twice(self, engine, accounts, transfers):
        first = engine.execute(PAYER_ID, PAYEE_ID, Money(40), idempotency_key=KEY)
        second = engine.execute(PAYER_ID, PAYEE_ID, Money(40), idempotency_key=KEY)

        assert second.transfer == first.transfer
        assert balances(accounts) == (60, 40)
        assert len(transfers.find_by_idempotency_key(KEY)) == 1

    def test_failed_attempt_can_be_retried(
        self, payer, payee, merchant, make_engine, transfers
    ):
        accounts = FailingWalletRepository(
            [payer, payee, merchant], allowed_writes={PAYEE_ID: 0}
        )
        with pytest.raises(PersistenceFailure) as exc_info:
            make_engine(accounts).execute(
                PAYER_ID, PAYEE_ID, Money(100), idempotency_key=KEY
            )
        key = exc_info.value.idempotency_key
        assert key == KEY

        accounts.allowed_writes.clear()
        result = make_engine(accounts).execute(
            PAYER_ID, PAYEE_ID, Money(100), idempotency_key=key
        )

        assert result.transfer.status is TransferStatus.COMPLETED
        assert balances(accounts) == (0, 100)
        attempts = transfers.find_by_idempotency_key(KEY)
        assert [a.status for a in attempts] == [
            TransferStatus.FAILED,
            TransferStatus.COMPLETED,
        ]

    def test_retry_of_an_unkeyed_failure_uses_the_reported_key(
        self, accounts, make_engine, transfers
    ):
        with pytest.raises(TransferNotAuthorized):
            make_engine(accounts, authorizer=StubAuthorizer(approve=False)).execute(
                PAYER_ID, PAYEE_ID, Money(10)
            )
        [rejected] = transfers.all()

        result = make_engine(accounts).execute(
            PAYER_ID, PAYEE_ID, Money(10), idempotency_key=rejected.idempotency_key
        )

        assert result.transfer.id != rejected.id
        assert result.transfer.idempotency_key == rejected.id

    def test_in_flight_attempt_blocks_retry(self, engine, transfers, accounts):
        transfers.create(
            Transfer(
                id=UUID(int=77),
                payer_id=PAYER_ID,
                payee_id=PAYEE_ID,
                value=Money(10),
                idempotency_key=KEY,
            )
        )

        with pytest.raises(PersistenceFailure) as exc_info:
            engine.execute(PAYER_ID, PAYEE_ID, Money(10), idempotency_key=KEY)

        assert exc_info.value.transfer_id == UUID(int=77)
        assert balances(accounts) == (100, 0)

    def test_status_store_down_during_abort_then_retry_succeeds(
        self, payer, payee, merchant, make_engine
    ):
        """The rolled back attempt stays PENDING, then the retry closes it."""
        accounts = FailingWalletRepository(
            [payer, payee, merchant], allowed_writes={PAYER_ID: 0}
        )
        transfers = UnavailableStatusRepository(failures=1000)
        engine = make_engine(accounts, transfers=transfers)

        with pytest.raises(PersistenceFailure):
            engine.execute(PAYER_ID, PAYEE_ID, Money(10), idempotency_key=KEY)
        assert [a.status for a in transfers.find_by_idempotency_key(KEY)] == [
            TransferStatus.PENDING
        ]

        accounts.allowed_writes.clear()
        transfers.failures = 0
        result = engine.execute(PAYER_ID, PAYEE_ID, Money(10), idempotency_key=KEY)

        assert result.transfer.status is TransferStatus.COMPLETED
        assert balances(accounts) == (90, 10)
        assert [a.status for a in transfers.find_by_idempotency_key(KEY)] == [
            TransferStatus.FAILED,
            TransferStatus.COMPLETED,
        ]

    def test_pending_attempt_unknown_to_the_engine_is_not_closed(
        self, payer, payee, merchant, make_engine
    ):
        accounts = FailingWalletRepository(
            [payer, payee, merchant], allowed_writes={PAYER_ID: 0}
        )
        transfers = UnavailableStatusRepository(failures=1000)

        with pytest.raises(PersistenceFailure):
            make_engine(accounts, transfers=transfers).execute(
                PAYER_ID, PAYEE_ID, Money(10), idempotency_key=KEY
            )
        accounts.allowed_writes.clear()
        transfers.failures = 0

        with pytest.raises(PersistenceFailure, match="still in progress"):
            make_engine(accounts, transfers=transfers).execute(
                PAYER_ID, PAYEE_ID, Money(10), idempotency_key=KEY
            )
        assert balances(accounts) == (100, 0)

    def test_concurrent_retries_with_one_key_debit_once(
        self, accounts, make_engine
    ):
        """Both callers pass the key lookup before either records an attempt."""
        transfers = LockstepKeyLookupRepository()
        engine = make_engine(accounts, transfers=transfers)

        def run(_):
            try:
                return engine.execute(
                    PAYER_ID, PAYEE_ID, Money(10), idempotency_key=KEY
                )
            except PersistenceFailure as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(run, range(2)))

        refused = [o for o in outcomes if isinstance(o, PersistenceFailure)]
        completed = [o for o in outcomes if not isinstance(o, PersistenceFailure)]
        assert len(completed) == 1
        assert len(refused) == 1
        assert refused[0].idempotency_key == KEY
        assert refused[0].transfer_id == completed[0].transfer.id
        assert balances(accounts) == (90, 10)
        assert [a.status for a in transfers.find_by_idempotency_key(KEY)] == [
            TransferStatus.COMPLETED
        ]
