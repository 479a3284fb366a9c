from .document import Document, DocumentType
from .money import Currency, Money

__all__ = [
    "Currency",
    "Document",
    "DocumentType",
    "Money",
]
