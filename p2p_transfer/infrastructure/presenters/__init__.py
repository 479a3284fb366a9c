from .transfer import JsonTransferPresenter
from .user import JsonUserPresenter

__all__ = [
    "JsonTransferPresenter",
    "JsonUserPresenter",
]
