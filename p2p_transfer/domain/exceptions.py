"""
Error taxonomy for the transfer system.

Input and invariant errors are raised by the domain and are never retried.
Infrastructure errors carry ``retryable = True``. ``ReconciliationRequired``
is the only fatal condition.
"""

from uuid import UUID


class TransferDomainError(Exception):
    """Base class for every error raised by the transfer system."""

    retryable: bool = False


# Input errors


class InvalidAmount(TransferDomainError):
    """Raised when a money amount is not a non-negative integer."""


class CurrencyMismatch(TransferDomainError):
    """Raised when arithmetic mixes two currencies."""


class InvalidRole(TransferDomainError):
    """Raised when a user role is not one of the known roles."""


class InvalidDocument(TransferDomainError):
    """Raised when a document number is malformed for its type."""


class InvalidIdentifier(TransferDomainError):
    """Raised when an identifier is not a valid UUID."""


class InvalidTransfer(TransferDomainError):
    """Raised when a transfer request is self-directed or has no value."""


class InvalidUserData(TransferDomainError):
    """Raised when registration fields such as the email fail validation."""


class UserNotFound(TransferDomainError):
    """Raised when the requested user cannot be found."""

    def __init__(self, user_id: UUID | str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class UserAlreadyExists(TransferDomainError):
    """Raised when registering a user whose id, document or email is taken."""


# Invariant errors


class InsufficientFunds(TransferDomainError):
    """Raised when a debit would take a balance below zero."""


class TransferNotAuthorized(TransferDomainError):
    """Raised when the payer role or the external authorizer denies a transfer."""


class InvalidStatusTransition(TransferDomainError):
    """Raised when a transfer leaves a terminal status."""


# Infrastructure errors


class InfrastructureError(TransferDomainError):
    retryable = True


class RepositoryError(InfrastructureError):
    """Raised by repository adapters when a read or write fails."""


class ConcurrentModification(RepositoryError):
    """Raised when a wallet version changed between read and write."""

    def __init__(
        self, user_id: UUID, expected_version: int, actual_version: int | None
    ) -> None:
        super().__init__(
            f"Wallet of user {user_id} changed: expected version "
            f"{expected_version}, found {actual_version}"
        )
        self.user_id = user_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class DuplicateAttempt(RepositoryError):
    """Raised when an idempotency key already has an active or completed attempt."""

    def __init__(self, idempotency_key: UUID, transfer_id: UUID | None) -> None:
        super().__init__(
            f"Idempotency key {idempotency_key} is held by transfer {transfer_id}"
        )
        self.idempotency_key = idempotency_key
        self.transfer_id = transfer_id


class PersistenceFailure(InfrastructureError):
    """
    Raised when the transfer could not be persisted.

    The caller may retry with ``idempotency_key``; a completed attempt under
    the same key is never executed twice.
    """

    def __init__(
        self,
        message: str,
        *,
        idempotency_key: UUID | None = None,
        transfer_id: UUID | None = None,
    ) -> None:
        super().__init__(message)
        self.idempotency_key = idempotency_key
        self.transfer_id = transfer_id


class AuthorizerError(InfrastructureError):
    """Raised when the external authorizer cannot be reached or answers badly."""


class NotificationError(InfrastructureError):
    """Raised when a completion notification could not be delivered."""


class TransferCancelled(InfrastructureError):
    """Raised when the caller cancelled the operation or its deadline passed."""


# Fatal


class ReconciliationRequired(TransferDomainError):
    """
    Raised when a compensating write failed.

    Balances may no longer be conserved; the attached details are what an
    operator needs to repair the wallet by hand.
    """

    def __init__(
        self,
        transfer_id: UUID,
        user_id: UUID,
        expected_balance: int,
        observed_balance: int | None,
    ) -> None:
        super().__init__(
            f"Reconciliation required for transfer {transfer_id}: wallet of "
            f"user {user_id} expected {expected_balance}, "
            f"observed {observed_balance}"
        )
        self.transfer_id = transfer_id
        self.user_id = user_id
        self.expected_balance = expected_balance
        self.observed_balance = observed_balance
