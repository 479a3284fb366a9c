from uuid import UUID

from p2p_transfer.application.dto import UserOutput
from p2p_transfer.application.interfaces import AccountRepository, UserPresenter
from p2p_transfer.utils.identifiers import parse_uuid


class FindUserByIdUseCase:
    def __init__(self, accounts: AccountRepository, presenter: UserPresenter):
        self.accounts = accounts
        self.presenter = presenter

    def execute(self, user_id: UUID | str) -> UserOutput:
        """
        Raises:
            InvalidIdentifier: ``user_id`` is not a UUID.
            UserNotFound: No user has this id.
        """
        user = self.accounts.find_by_id(parse_uuid(user_id, "user id"))
        return self.presenter.present(user)
