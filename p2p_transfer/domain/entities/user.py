"""
User entity: identity, role and the wallet the user owns.
"""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    InstanceOf,
    SecretStr,
    field_validator,
)

from p2p_transfer.domain.exceptions import InvalidIdentifier, InvalidRole
from p2p_transfer.domain.value_objects.document import Document
from p2p_transfer.domain.value_objects.money import Money
from p2p_transfer.utils.datetime_helpers import utc_now

from .wallet import Wallet


class UserRole(StrEnum):
    """User roles. Only common users may send money."""

    COMMON = "COMMON"
    MERCHANT = "MERCHANT"

    @property
    def can_transfer(self) -> bool:
        return self is UserRole.COMMON


class User(BaseModel):
    """
    User domain entity.

    Immutable: deposit and withdraw return a new User carrying the new wallet.

    Attributes:
        id: Unique user identifier (UUID).
        full_name: Display name.
        email: Contact email.
        password: Opaque secret; never rendered.
        document: CPF or CNPJ.
        role: COMMON or MERCHANT.
        wallet: The wallet owned by the user.
        created_at: Registration time.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    password: SecretStr
    document: InstanceOf[Document]
    role: UserRole
    wallet: InstanceOf[Wallet] = Field(default_factory=Wallet.empty)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: UUID | str) -> UUID:
        if isinstance(v, UUID):
            return v
        try:
            return UUID(str(v))
        except ValueError as e:
            raise InvalidIdentifier(f"Invalid user id: {v!r}") from e

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: UserRole | str) -> UserRole:
        try:
            return UserRole(v)
        except ValueError as e:
            raise InvalidRole(f"Unknown user role: {v!r}") from e

    @field_validator("full_name", mode="before")
    @classmethod
    def clean_full_name(cls, v: str) -> str:
        return " ".join(str(v).split())

    def can_transfer(self) -> bool:
        return self.role.can_transfer

    @property
    def balance(self) -> Money:
        return self.wallet.money

    def deposit(self, money: Money) -> "User":
        return self.model_copy(update={"wallet": self.wallet.credit(money)})

    def withdraw(self, money: Money) -> "User":
        """
        Return the user with ``money`` taken from the wallet.

        Raises:
            InsufficientFunds: If the wallet holds less than ``money``.
        """
        return self.model_copy(update={"wallet": self.wallet.debit(money)})

    def with_wallet(self, wallet: Wallet) -> "User":
        return self.model_copy(update={"wallet": wallet})


def new_user(
    id: UUID | str,
    full_name: str,
    email: str,
    password: str | SecretStr,
    document: Document,
    role: UserRole | str,
    wallet: Wallet | None = None,
    created_at: datetime | None = None,
) -> User:
    """
    Build a validated user. Pure: nothing is persisted.

    Raises:
        InvalidIdentifier: ``id`` is not a UUID.
        InvalidRole: ``role`` is not a known role.
        InvalidDocument: raised earlier by ``Document`` itself.
    """
    return User(
        id=id,
        full_name=full_name,
        email=email,
        password=password,
        document=document,
        role=role,
        wallet=wallet or Wallet.empty(),
        created_at=created_at or utc_now(),
    )
