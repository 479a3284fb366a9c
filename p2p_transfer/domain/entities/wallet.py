from dataclasses import dataclass, replace

from p2p_transfer.domain.value_objects.money import Currency, Money


@dataclass(frozen=True)
class Wallet:
    """
    A user's single balance holding.

    Attributes:
        money: Current balance.
        version: Store sequence number at read time, used for optimistic
            concurrency. Credit and debit keep it; the store bumps it on write.
    """

    money: Money
    version: int = 0

    @classmethod
    def empty(cls, currency: Currency = Currency.BRL) -> "Wallet":
        return cls(Money.zero(currency))

    @property
    def balance(self) -> int:
        return self.money.amount

    @property
    def currency(self) -> Currency:
        return self.money.currency

    def credit(self, money: Money) -> "Wallet":
        return replace(self, money=self.money.add(money))

    def debit(self, money: Money) -> "Wallet":
        """
        Return a wallet with ``money`` taken out.

        Raises:
            InsufficientFunds: If the balance is lower than ``money``.
        """
        return replace(self, money=self.money.subtract(money))
