from .authorizer import HttpAuthorizer
from .notifier import HttpNotifier

__all__ = ["HttpAuthorizer", "HttpNotifier"]
