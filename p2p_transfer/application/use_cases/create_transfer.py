"""
Transfer use case: parse the request, run the engine, present the result.
"""

from structlog import get_logger

from p2p_transfer.application.cancellation import CancellationToken
from p2p_transfer.application.dto import TransferInput, TransferOutput
from p2p_transfer.application.interfaces import (
    AccountRepository,
    Authorizer,
    IdGenerator,
    Notifier,
    TransferPresenter,
    TransferRepository,
)
from p2p_transfer.application.transfer_engine import TransferEngine
from p2p_transfer.config import TransferConfig
from p2p_transfer.domain.value_objects.money import Currency, Money
from p2p_transfer.infrastructure.identity import UuidGenerator
from p2p_transfer.utils.identifiers import parse_uuid

logger = get_logger(__name__)


class CreateTransferUseCase:
    """Entry point for one transfer request coming from outside."""

    def __init__(
        self,
        engine: TransferEngine,
        presenter: TransferPresenter,
        default_currency: Currency = Currency.BRL,
    ):
        self.engine = engine
        self.presenter = presenter
        self.default_currency = default_currency

    def execute(
        self,
        request: TransferInput,
        cancellation: CancellationToken | None = None,
    ) -> TransferOutput:
        """
        Run the transfer described by ``request``.

        Returns:
            The presented COMPLETED transfer. ``notified`` is False when the
            completion event could not be delivered.

        Raises:
            InvalidIdentifier: A payer, payee or key is not a UUID.
            InvalidAmount: Unknown currency.
            Any error raised by ``TransferEngine.execute``.
        """
        payer_id = parse_uuid(request.payer_id, "payer id")
        payee_id = parse_uuid(request.payee_id, "payee id")
        key = (
            parse_uuid(request.idempotency_key, "idempotency key")
            if request.idempotency_key
            else None
        )
        value = Money(request.value, request.currency or self.default_currency)

        result = self.engine.execute(
            payer_id,
            payee_id,
            value,
            idempotency_key=key,
            cancellation=cancellation,
        )
        return self.presenter.present(result.transfer, notified=result.notified)


def build_transfer_engine(
    accounts: AccountRepository,
    transfers: TransferRepository,
    authorizer: Authorizer,
    notifier: Notifier,
    config: TransferConfig | None = None,
    id_generator: IdGenerator | None = None,
) -> TransferEngine:
    """
    Build an engine tuned by ``config``.

    Args:
        accounts: User and wallet store.
        transfers: Transfer record store.
        authorizer: External approval service.
        notifier: Completion event sink.
        config: Retry and compensation settings; defaults when omitted.
        id_generator: Source of transfer ids; random UUIDs when omitted.
    """
    config = config or TransferConfig()
    return TransferEngine(
        accounts=accounts,
        transfers=transfers,
        authorizer=authorizer,
        notifier=notifier,
        id_generator=id_generator or UuidGenerator(),
        max_attempts=config.max_attempts,
        retry_wait_seconds=config.retry_wait_seconds,
        compensation_attempts=config.compensation_attempts,
    )
