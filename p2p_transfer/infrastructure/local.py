"""
In-process adapters for running without the external services.
"""

from structlog import get_logger

from p2p_transfer.application.interfaces import Authorizer, Notifier
from p2p_transfer.domain.entities.transfer import Transfer

logger = get_logger(__name__)


class StaticAuthorizer(Authorizer):
    """Gives the same answer to every transfer."""

    def __init__(self, approve: bool = True):
        self.approve = approve

    def authorize(self, transfer: Transfer) -> bool:
        return self.approve


class LoggingNotifier(Notifier):
    """Writes the completion event to the log instead of sending it."""

    def notify(self, transfer: Transfer) -> None:
        logger.info(
            "Transfer notification",
            transfer_id=str(transfer.id),
            payee_id=str(transfer.payee_id),
            value=transfer.value,
        )
