from p2p_transfer.application.dto import DocumentOutput, UserOutput, WalletOutput
from p2p_transfer.application.interfaces import UserPresenter
from p2p_transfer.domain.entities.user import User


class JsonUserPresenter(UserPresenter):
    def present(self, user: User) -> UserOutput:
        return UserOutput(
            id=str(user.id),
            full_name=user.full_name,
            document=DocumentOutput(
                type=user.document.type.value,
                value=user.document.number,
            ),
            email=user.email,
            wallet=WalletOutput(
                currency=user.wallet.currency.value,
                amount=user.wallet.balance,
            ),
            type=user.role.value,
            created_at=user.created_at.isoformat(),
        )
