"""
Authorizer backed by an external HTTP decision service.
"""

import httpx
import orjson
from structlog import get_logger

from p2p_transfer.application.interfaces import Authorizer
from p2p_transfer.config import AuthorizerConfig
from p2p_transfer.domain.entities.transfer import Transfer
from p2p_transfer.domain.exceptions import AuthorizerError

logger = get_logger(__name__)


class HttpAuthorizer(Authorizer):
    """
    Asks the decision service whether a transfer may complete.

    The service answers ``{"message": "Autorizado"}`` when it approves. Any
    other message is a denial; an unreachable service or an unreadable body
    is an AuthorizerError.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        approved_message: str = "Autorizado",
        client: httpx.Client | None = None,
    ):
        """
        Args:
            url: Endpoint queried with GET.
            timeout_seconds: Per-request timeout.
            approved_message: Value of ``message`` that means approval.
            client: Preconfigured client, mostly for tests.
        """
        self.url = url
        self.approved_message = approved_message
        self.client = client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_config(
        cls, config: AuthorizerConfig, client: httpx.Client | None = None
    ) -> "HttpAuthorizer":
        return cls(
            url=config.url,
            timeout_seconds=config.timeout_seconds,
            approved_message=config.approved_message,
            client=client,
        )

    def authorize(self, transfer: Transfer) -> bool:
        try:
            response = self.client.get(
                self.url, params={"transfer_id": str(transfer.id)}
            )
        except httpx.HTTPError as e:
            logger.error(f"Authorizer unreachable at {self.url}: {e}")
            raise AuthorizerError(f"Authorizer request failed: {e}") from e

        try:
            body = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise AuthorizerError(
                f"Authorizer answered {response.status_code} with a non-JSON body"
            ) from e

        message = body.get("message") if isinstance(body, dict) else None
        if message is None:
            if response.is_server_error:
                raise AuthorizerError(
                    f"Authorizer error {response.status_code}"
                )
            raise AuthorizerError("Authorizer answer has no message")

        approved = response.is_success and message == self.approved_message
        logger.debug(
            "Authorizer answered",
            transfer_id=str(transfer.id),
            status_code=response.status_code,
            approved=approved,
        )
        return approved

    def close(self) -> None:
        self.client.close()
