"""
Money value object for wallet balances.

Amounts are integers in minor currency units (cents for BRL), so no rounding
ever happens.
"""

from dataclasses import dataclass
from enum import StrEnum

from p2p_transfer.domain.exceptions import (
    CurrencyMismatch,
    InsufficientFunds,
    InvalidAmount,
)


class Currency(StrEnum):
    """Supported currencies."""

    BRL = "BRL"
    USD = "USD"
    EUR = "EUR"


@dataclass(frozen=True)
class Money:
    """
    Money value object.

    Attributes:
        amount: Non-negative amount in minor units.
        currency: Currency of the amount.

    Raises:
        InvalidAmount: If amount is negative or not an integer.
    """

    amount: int
    currency: Currency = Currency.BRL

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidAmount(
                f"Amount must be an integer in minor units: {self.amount!r}"
            )
        if self.amount < 0:
            raise InvalidAmount(f"Amount cannot be negative: {self.amount}")

        try:
            currency = Currency(self.currency)
        except ValueError as e:
            raise InvalidAmount(f"Unknown currency: {self.currency!r}") from e
        # Use __setattr__ because of frozen=True
        object.__setattr__(self, "currency", currency)

    @classmethod
    def zero(cls, currency: Currency = Currency.BRL) -> "Money":
        return cls(0, currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatch(
                f"Cannot combine {self.currency} with {other.currency}"
            )

    def add(self, other: "Money") -> "Money":
        """Return the sum of two amounts of the same currency."""
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        """
        Return the difference of two amounts of the same currency.

        Raises:
            InsufficientFunds: If ``other`` is larger than this amount.
        """
        self._check_currency(other)
        if other.amount > self.amount:
            raise InsufficientFunds(
                f"Cannot subtract {other} from {self}"
            )
        return Money(self.amount - other.amount, self.currency)

    def compare(self, other: "Money") -> int:
        """Return -1, 0 or 1 as this amount is lower, equal or higher."""
        self._check_currency(other)
        return (self.amount > other.amount) - (self.amount < other.amount)

    def is_zero(self) -> bool:
        return self.amount == 0

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __lt__(self, other: "Money") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "Money") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "Money") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "Money") -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.value}"

    def __repr__(self) -> str:
        return f"Money({self.amount}, '{self.currency.value}')"
