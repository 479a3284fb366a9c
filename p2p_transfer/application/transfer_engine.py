"""
Funds-transfer engine.

Moves money between two wallets without assuming a multi-record transaction:
every write that has to be undone is reversed with an inverse credit or debit.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

from structlog import get_logger
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from p2p_transfer.domain.entities.transfer import Transfer, TransferStatus
from p2p_transfer.domain.entities.user import User
from p2p_transfer.domain.exceptions import (
    ConcurrentModification,
    DuplicateAttempt,
    InsufficientFunds,
    InvalidStatusTransition,
    InvalidTransfer,
    PersistenceFailure,
    ReconciliationRequired,
    RepositoryError,
    TransferCancelled,
    TransferNotAuthorized,
    UserNotFound,
)
from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.infrastructure.logger import bind_context, clear_context
from p2p_transfer.utils.datetime_helpers import utc_now

from .cancellation import CancellationToken
from .interfaces import (
    AccountRepository,
    Authorizer,
    IdGenerator,
    Notifier,
    TransferRepository,
)

logger = get_logger(__name__)

_CONTEXT_KEYS = ("payer_id", "payee_id", "idempotency_key")


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of a successful transfer.

    Attributes:
        transfer: The COMPLETED transfer record.
        notification_error: Set when the completion event could not be
            delivered. The transfer stays final; notification can be retried
            with the transfer id.
    """

    transfer: Transfer
    notification_error: Exception | None = None

    @property
    def notified(self) -> bool:
        return self.notification_error is None


class TransferEngine:
    """
    Orchestrates one transfer: load, check, debit, credit, persist,
    authorize, complete and notify.

    Wallet writes use optimistic concurrency. When a wallet changed under us
    the attempt is undone and the whole operation starts again, at most
    ``max_attempts`` times.
    """

    def __init__(
        self,
        accounts: AccountRepository,
        transfers: TransferRepository,
        authorizer: Authorizer,
        notifier: Notifier,
        id_generator: IdGenerator,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = 3,
        retry_wait_seconds: float = 0.05,
        compensation_attempts: int = 3,
    ):
        """
        Initialize the engine.

        Args:
            accounts: User and wallet store.
            transfers: Transfer record store.
            authorizer: External approval service.
            notifier: Completion event sink.
            id_generator: Source of transfer ids.
            clock: Source of transfer timestamps.
            max_attempts: Attempts before a wallet conflict is surfaced as
                PersistenceFailure.
            retry_wait_seconds: Base of the exponential wait between attempts.
            compensation_attempts: Attempts to write one compensating entry
                before giving up with ReconciliationRequired.
        """
        self.accounts = accounts
        self.transfers = transfers
        self.authorizer = authorizer
        self.notifier = notifier
        self.id_generator = id_generator
        self.clock = clock
        self.max_attempts = max_attempts
        self.retry_wait_seconds = retry_wait_seconds
        self.compensation_attempts = compensation_attempts
        # attempts whose wallets were restored but whose FAILED status
        # could not be written; a keyed retry closes them
        self._abandoned: set[UUID] = set()
        self._abandoned_lock = threading.Lock()

    def execute(
        self,
        payer_id: UUID,
        payee_id: UUID,
        value: Money,
        *,
        idempotency_key: UUID | None = None,
        cancellation: CancellationToken | None = None,
    ) -> TransferResult:
        """
        Transfer ``value`` from the payer's wallet to the payee's wallet.

        Args:
            payer_id: User sending the money.
            payee_id: User receiving the money.
            value: Amount to move, greater than zero.
            idempotency_key: Key of an earlier attempt to retry. A completed
                attempt under this key is returned instead of moving money
                again.
            cancellation: Caller's cancellation signal or deadline.

        Returns:
            TransferResult with the COMPLETED transfer.

        Raises:
            InvalidTransfer: Self-transfer or zero value.
            UserNotFound: Payer or payee does not exist.
            TransferNotAuthorized: Payer role or authorizer denied.
            InsufficientFunds: Payer balance is lower than ``value``.
            PersistenceFailure: A write failed; balances are unchanged.
            TransferCancelled: Cancelled; balances are unchanged.
            ReconciliationRequired: A compensating write failed.
        """
        if payer_id == payee_id:
            raise InvalidTransfer("Payer and payee must be different users")
        if value.is_zero():
            raise InvalidTransfer("Transfer value must be greater than zero")

        token = cancellation or CancellationToken()
        caller_supplied_key = idempotency_key is not None
        key = idempotency_key or self.id_generator.new_id()

        bind_context(
            payer_id=str(payer_id),
            payee_id=str(payee_id),
            idempotency_key=str(key),
        )
        try:
            if caller_supplied_key:
                completed = self._find_completed_attempt(key)
                if completed is not None:
                    logger.info(
                        "Returning completed transfer for idempotency key",
                        transfer_id=str(completed.id),
                    )
                    return TransferResult(transfer=completed)

            transfer = self._execute_with_retry(
                payer_id, payee_id, value, key, caller_supplied_key, token
            )
            return TransferResult(
                transfer=transfer,
                notification_error=self._notify(transfer),
            )
        finally:
            clear_context(*_CONTEXT_KEYS)

    def _find_completed_attempt(self, key: UUID) -> Transfer | None:
        try:
            attempts = self.transfers.find_by_idempotency_key(key)
        except RepositoryError as e:
            raise PersistenceFailure(
                f"Could not read attempts for key {key}", idempotency_key=key
            ) from e

        for attempt in attempts:
            if attempt.status == TransferStatus.COMPLETED:
                return attempt

        for attempt in attempts:
            if attempt.status.is_terminal or self._close_abandoned(attempt):
                continue
            raise PersistenceFailure(
                f"Transfer {attempt.id} for key {key} is still in progress",
                idempotency_key=key,
                transfer_id=attempt.id,
            )
        return None

    def _close_abandoned(self, attempt: Transfer) -> bool:
        """
        Mark FAILED an attempt this engine already rolled back.

        Returns True when the attempt no longer blocks its key. Attempts not
        known to be rolled back are left alone: their wallets may still hold
        the transfer.
        """
        with self._abandoned_lock:
            if attempt.id not in self._abandoned:
                return False
        logger.info(
            "Closing rolled back attempt left PENDING",
            transfer_id=str(attempt.id),
        )
        try:
            return self._mark_terminal(attempt, TransferStatus.FAILED)
        except InvalidStatusTransition:
            # closed concurrently by another retry
            with self._abandoned_lock:
                self._abandoned.discard(attempt.id)
            return True

    def _execute_with_retry(
        self,
        payer_id: UUID,
        payee_id: UUID,
        value: Money,
        key: UUID,
        caller_supplied_key: bool,
        token: CancellationToken,
    ) -> Transfer:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=1),
            retry=retry_if_exception_type(ConcurrentModification),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    if number > 1:
                        logger.info("Retrying transfer", attempt=number)
                    # a first attempt without caller key is identified by the key
                    transfer_id = (
                        key
                        if number == 1 and not caller_supplied_key
                        else self.id_generator.new_id()
                    )
                    transfer = self._attempt(
                        payer_id, payee_id, value, key, transfer_id, token
                    )
        except ConcurrentModification as e:
            logger.warning(
                f"Wallets kept changing after {self.max_attempts} attempts"
            )
            raise PersistenceFailure(
                "Concurrent modification of a wallet, retry later",
                idempotency_key=key,
            ) from e
        return transfer

    def _attempt(
        self,
        payer_id: UUID,
        payee_id: UUID,
        value: Money,
        key: UUID,
        transfer_id: UUID,
        token: CancellationToken,
    ) -> Transfer:
        token.raise_if_cancelled()
        payer = self._load(payer_id, key)
        if not payer.can_transfer():
            logger.info("Payer role cannot send money", role=payer.role.value)
            raise TransferNotAuthorized(
                f"User {payer_id} with role {payer.role} cannot transfer"
            )

        token.raise_if_cancelled()
        payee = self._load(payee_id, key)

        debited = payer.withdraw(value)
        credited = payee.deposit(value)

        token.raise_if_cancelled()
        transfer = Transfer(
            id=transfer_id,
            payer_id=payer_id,
            payee_id=payee_id,
            value=value,
            created_at=self.clock(),
            status=TransferStatus.PENDING,
            idempotency_key=key,
        )
        try:
            transfer = self.transfers.create(transfer)
        except DuplicateAttempt as e:
            logger.info(f"Key already held by transfer {e.transfer_id}")
            raise PersistenceFailure(
                f"Transfer {e.transfer_id} for key {key} is already in progress",
                idempotency_key=key,
                transfer_id=e.transfer_id,
            ) from e
        except RepositoryError as e:
            logger.error(f"Could not persist transfer {transfer_id}: {e}")
            raise PersistenceFailure(
                "Transfer record could not be written",
                idempotency_key=key,
                transfer_id=transfer_id,
            ) from e
        logger.debug("Transfer recorded", transfer_id=str(transfer.id))

        if token.cancelled:
            self._mark_terminal(transfer, TransferStatus.FAILED)
            token.raise_if_cancelled()

        self._write_wallets(transfer, payer, debited, payee, credited)

        if token.cancelled:
            logger.warning("Cancelled after wallet writes, compensating")
            self._reverse_wallets(transfer, payer, payee)
            self._mark_terminal(transfer, TransferStatus.FAILED)
            token.raise_if_cancelled()

        approved, error = self._authorize(transfer)
        if not approved:
            self._reverse_wallets(transfer, payer, payee)
            self._mark_terminal(transfer, TransferStatus.REJECTED)
            raise TransferNotAuthorized(
                f"Transfer {transfer.id} was not authorized"
            ) from error

        return self._complete(transfer, payer, payee)

    def _load(self, user_id: UUID, key: UUID) -> User:
        try:
            return self.accounts.find_by_id(user_id)
        except UserNotFound:
            logger.info(f"User {user_id} not found")
            raise
        except RepositoryError as e:
            raise PersistenceFailure(
                f"Could not load user {user_id}", idempotency_key=key
            ) from e

    def _write_wallets(
        self,
        transfer: Transfer,
        payer: User,
        debited: User,
        payee: User,
        credited: User,
    ) -> None:
        """Persist the payer wallet, then the payee wallet."""
        try:
            self.accounts.update_wallet(
                payer.id, debited.wallet.money, payer.wallet.version
            )
        except (RepositoryError, UserNotFound) as e:
            logger.warning(f"Payer wallet write failed: {e}")
            self._mark_terminal(transfer, TransferStatus.FAILED)
            if isinstance(e, (ConcurrentModification, UserNotFound)):
                raise
            raise PersistenceFailure(
                "Payer wallet could not be written",
                idempotency_key=transfer.idempotency_key,
                transfer_id=transfer.id,
            ) from e

        try:
            self.accounts.update_wallet(
                payee.id, credited.wallet.money, payee.wallet.version
            )
        except (RepositoryError, UserNotFound) as e:
            logger.warning(f"Payee wallet write failed, re-crediting payer: {e}")
            self._compensate(
                transfer, payer.id, credit=True, expected=payer.wallet.balance
            )
            self._mark_terminal(transfer, TransferStatus.FAILED)
            if isinstance(e, (ConcurrentModification, UserNotFound)):
                raise
            raise PersistenceFailure(
                "Payee wallet could not be written",
                idempotency_key=transfer.idempotency_key,
                transfer_id=transfer.id,
            ) from e

    def _reverse_wallets(
        self, transfer: Transfer, payer: User, payee: User
    ) -> None:
        # payee first: if the money already left the payee wallet the payer
        # must not be credited, otherwise money would be created
        self._compensate(
            transfer, payee.id, credit=False, expected=payee.wallet.balance
        )
        self._compensate(
            transfer, payer.id, credit=True, expected=payer.wallet.balance
        )

    def _compensate(
        self, transfer: Transfer, user_id: UUID, *, credit: bool, expected: int
    ) -> None:
        """
        Apply the inverse of an earlier wallet write as a fresh delta.

        The wallet is re-read before each try so concurrent transfers on the
        same wallet are not overwritten. Cancellation is not checked here.

        Raises:
            ReconciliationRequired: The inverse write never succeeded.
        """
        last_error: Exception | None = None
        observed: int | None = None

        for _ in range(self.compensation_attempts):
            try:
                user = self.accounts.find_by_id(user_id)
                observed = user.wallet.balance
                wallet = (
                    user.wallet.credit(transfer.value)
                    if credit
                    else user.wallet.debit(transfer.value)
                )
                self.accounts.update_wallet(
                    user_id, wallet.money, user.wallet.version
                )
            except ConcurrentModification as e:
                last_error = e
                continue
            except InsufficientFunds as e:
                last_error = e
                break
            except (RepositoryError, UserNotFound) as e:
                last_error = e
                continue

            logger.info(
                "Compensation applied",
                transfer_id=str(transfer.id),
                user_id=str(user_id),
                operation="credit" if credit else "debit",
            )
            return

        logger.critical(
            "Compensation failed, reconciliation required",
            transfer_id=str(transfer.id),
            user_id=str(user_id),
            expected_balance=expected,
            observed_balance=observed,
            error=str(last_error),
        )
        raise ReconciliationRequired(
            transfer_id=transfer.id,
            user_id=user_id,
            expected_balance=expected,
            observed_balance=observed,
        ) from last_error

    def _authorize(self, transfer: Transfer) -> tuple[bool, Exception | None]:
        try:
            approved = self.authorizer.authorize(transfer)
        except Exception as e:
            # any authorizer failure counts as a denial
            logger.warning(f"Authorizer failed for transfer {transfer.id}: {e}")
            return False, e

        if not approved:
            logger.info("Transfer denied by authorizer", transfer_id=str(transfer.id))
        return approved, None

    def _complete(self, transfer: Transfer, payer: User, payee: User) -> Transfer:
        try:
            completed = self.transfers.update_status(
                transfer.id, TransferStatus.COMPLETED
            )
        except RepositoryError as e:
            logger.error(f"Could not complete transfer {transfer.id}: {e}")
            self._reverse_wallets(transfer, payer, payee)
            self._mark_terminal(transfer, TransferStatus.FAILED)
            raise PersistenceFailure(
                "Transfer could not be marked completed",
                idempotency_key=transfer.idempotency_key,
                transfer_id=transfer.id,
            ) from e

        logger.info(
            "Transfer completed",
            transfer_id=str(completed.id),
            value=completed.value,
        )
        return completed

    def _mark_terminal(self, transfer: Transfer, status: TransferStatus) -> bool:
        """
        Record a terminal failure status. The caller raises the real error.

        Only called once the wallets hold no trace of the attempt. When the
        write keeps failing the attempt is remembered, so a later retry under
        the same key can close it instead of waiting on it forever.

        Returns:
            True when the status was written.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.compensation_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=1),
            retry=retry_if_exception_type(RepositoryError),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self.transfers.update_status(transfer.id, status)
        except RepositoryError as e:
            logger.error(
                f"Transfer {transfer.id} left PENDING, could not mark {status}: {e}"
            )
            with self._abandoned_lock:
                self._abandoned.add(transfer.id)
            return False

        with self._abandoned_lock:
            self._abandoned.discard(transfer.id)
        return True

    def _notify(self, transfer: Transfer) -> Exception | None:
        try:
            self.notifier.notify(transfer)
        except Exception as e:
            logger.warning(
                f"Notification failed for transfer {transfer.id}: {e}"
            )
            return e
        return None
