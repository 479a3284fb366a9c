"""
User registration use case.
"""

from datetime import datetime
from typing import Callable

from pydantic import ValidationError
from structlog import get_logger

from p2p_transfer.application.dto import CreateUserInput, UserOutput
from p2p_transfer.application.interfaces import (
    AccountRepository,
    IdGenerator,
    UserPresenter,
)
from p2p_transfer.domain.entities.user import User, new_user
from p2p_transfer.domain.entities.wallet import Wallet
from p2p_transfer.domain.exceptions import InvalidUserData
from p2p_transfer.domain.value_objects.document import Document
from p2p_transfer.domain.value_objects.money import Currency, Money
from p2p_transfer.utils.datetime_helpers import utc_now

logger = get_logger(__name__)


class CreateUserUseCase:
    """
    Register a user with an opening wallet balance.

    Document, role and amount are validated by the domain; duplicates are
    rejected by the repository.
    """

    def __init__(
        self,
        accounts: AccountRepository,
        presenter: UserPresenter,
        id_generator: IdGenerator,
        clock: Callable[[], datetime] = utc_now,
        default_currency: Currency = Currency.BRL,
    ):
        self.accounts = accounts
        self.presenter = presenter
        self.id_generator = id_generator
        self.clock = clock
        self.default_currency = default_currency

    def execute(self, request: CreateUserInput) -> UserOutput:
        """
        Raises:
            InvalidDocument: Malformed CPF or CNPJ.
            InvalidRole: Unknown user type.
            InvalidAmount: Unknown currency.
            InvalidUserData: Any other field is malformed.
            UserAlreadyExists: Id, document or email already registered.
        """
        user = self._build(request)
        created = self.accounts.create(user)
        logger.info(
            "User registered",
            user_id=str(created.id),
            role=created.role.value,
        )
        return self.presenter.present(created)

    def _build(self, request: CreateUserInput) -> User:
        document = Document(request.document_type, request.document_number)
        money = Money(request.balance, request.currency or self.default_currency)
        try:
            return new_user(
                id=self.id_generator.new_id(),
                full_name=request.full_name,
                email=request.email,
                password=request.password,
                document=document,
                role=request.type,
                wallet=Wallet(money=money),
                created_at=self.clock(),
            )
        except ValidationError as e:
            fields = ", ".join(
                ".".join(map(str, err["loc"])) or "user" for err in e.errors()
            )
            raise InvalidUserData(f"Invalid user fields: {fields}") from e
