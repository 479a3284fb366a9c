"""
Notifier backed by an external HTTP messaging service.
"""

import httpx
import orjson
from structlog import get_logger

from p2p_transfer.application.interfaces import Notifier, TransferPresenter
from p2p_transfer.config import NotifierConfig
from p2p_transfer.domain.entities.transfer import Transfer
from p2p_transfer.domain.exceptions import NotificationError
from p2p_transfer.infrastructure.presenters import JsonTransferPresenter

logger = get_logger(__name__)


class HttpNotifier(Notifier):
    """
    Posts the presented transfer to the messaging service.

    Delivery counts only when the service answers 2xx with
    ``{"message": "Enviado"}``.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        sent_message: str = "Enviado",
        presenter: TransferPresenter | None = None,
        client: httpx.Client | None = None,
    ):
        self.url = url
        self.sent_message = sent_message
        self.presenter = presenter or JsonTransferPresenter()
        self.client = client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_config(
        cls, config: NotifierConfig, client: httpx.Client | None = None
    ) -> "HttpNotifier":
        return cls(
            url=config.url,
            timeout_seconds=config.timeout_seconds,
            sent_message=config.sent_message,
            client=client,
        )

    def notify(self, transfer: Transfer) -> None:
        payload = self.presenter.present(transfer).model_dump(
            exclude={"notified"}
        )
        try:
            response = self.client.post(
                self.url,
                content=orjson.dumps(payload),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            body = orjson.loads(response.content)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Notifier error: {e.response.status_code} - {e.response.text}"
            )
            raise NotificationError(
                f"Notifier answered {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Notifier unreachable at {self.url}: {e}")
            raise NotificationError(f"Notifier request failed: {e}") from e
        except orjson.JSONDecodeError as e:
            raise NotificationError("Notifier answered a non-JSON body") from e

        message = body.get("message") if isinstance(body, dict) else None
        if message != self.sent_message:
            raise NotificationError(f"Notification not sent: {message!r}")
        logger.info("Notification sent", transfer_id=str(transfer.id))

    def close(self) -> None:
        self.client.close()
