from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, model_validator

from p2p_transfer.domain.exceptions import (
    InvalidStatusTransition,
    InvalidTransfer,
)
from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.utils.datetime_helpers import utc_now


class TransferStatus(StrEnum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def holds_key(self) -> bool:
        """Whether an attempt in this status blocks new attempts under its key."""
        return self not in _KEY_RELEASED

    def can_transition_to(self, target: "TransferStatus") -> bool:
        return target in _TRANSITIONS[self]


_TERMINAL = frozenset(
    {TransferStatus.REJECTED, TransferStatus.COMPLETED, TransferStatus.FAILED}
)

_KEY_RELEASED = frozenset({TransferStatus.REJECTED, TransferStatus.FAILED})

_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset(
        {
            TransferStatus.AUTHORIZED,
            TransferStatus.REJECTED,
            TransferStatus.COMPLETED,
            TransferStatus.FAILED,
        }
    ),
    TransferStatus.AUTHORIZED: frozenset(
        {TransferStatus.COMPLETED, TransferStatus.FAILED}
    ),
    TransferStatus.REJECTED: frozenset(),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.FAILED: frozenset(),
}


class Transfer(BaseModel):
    """
    Record of one attempted money movement between two wallets.

    Users are referenced by id only. Attempts retried under the same
    ``idempotency_key`` get their own ``id``.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    payer_id: UUID
    payee_id: UUID
    value: InstanceOf[Money]
    created_at: datetime = Field(default_factory=utc_now)
    status: TransferStatus = TransferStatus.PENDING
    idempotency_key: UUID | None = None

    @model_validator(mode="before")
    @classmethod
    def default_idempotency_key(cls, data: Any) -> Any:
        """First attempts are keyed by their own id."""
        if isinstance(data, dict) and data.get("idempotency_key") is None:
            return {**data, "idempotency_key": data.get("id")}
        return data

    @model_validator(mode="after")
    def check_invariants(self) -> "Transfer":
        if self.payer_id == self.payee_id:
            raise InvalidTransfer("Payer and payee must be different users")
        if self.value.is_zero():
            raise InvalidTransfer("Transfer value must be greater than zero")
        return self

    def transition_to(self, status: TransferStatus) -> "Transfer":
        """
        Return a copy of the transfer in ``status``.

        Raises:
            InvalidStatusTransition: If the current status does not allow it.
        """
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransition(
                f"Transfer {self.id} cannot move from {self.status} to {status}"
            )
        return self.model_copy(update={"status": status})
