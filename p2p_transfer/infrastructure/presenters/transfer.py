from p2p_transfer.application.dto import TransferOutput
from p2p_transfer.application.interfaces import TransferPresenter
from p2p_transfer.domain.entities.transfer import Transfer


class JsonTransferPresenter(TransferPresenter):
    """Transfer shaped like the public JSON payload."""

    def present(self, transfer: Transfer, notified: bool = True) -> TransferOutput:
        return TransferOutput(
            id=str(transfer.id),
            payer=str(transfer.payer_id),
            payee=str(transfer.payee_id),
            value=transfer.value.amount,
            currency=transfer.value.currency.value,
            status=transfer.status.value,
            created_at=transfer.created_at.isoformat(),
            notified=notified,
        )
