from .create_transfer import CreateTransferUseCase, build_transfer_engine
from .create_user import CreateUserUseCase
from .find_user_by_id import FindUserByIdUseCase

__all__ = [
    "CreateTransferUseCase",
    "CreateUserUseCase",
    "FindUserByIdUseCase",
    "build_transfer_engine",
]
