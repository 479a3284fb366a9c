"""
Brazilian taxpayer documents.

CPF identifies a person (11 digits), CNPJ a company (14 digits). Both end with
two modulo-11 check digits.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from p2p_transfer.domain.exceptions import InvalidDocument


class DocumentType(StrEnum):
    CPF = "CPF"
    CNPJ = "CNPJ"

    @property
    def length(self) -> int:
        return 11 if self is DocumentType.CPF else 14

    @property
    def weights(self) -> tuple[list[int], list[int]]:
        """Weights for the first and second check digit."""
        if self is DocumentType.CPF:
            return list(range(10, 1, -1)), list(range(11, 1, -1))
        first = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
        return first, [6] + first


_NON_DIGITS = re.compile(r"\D")


def _check_digit(digits: list[int], weights: list[int]) -> int:
    remainder = sum(d * w for d, w in zip(digits, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder


@dataclass(frozen=True)
class Document:
    """
    Document value object.

    Attributes:
        type: CPF or CNPJ.
        number: Digits only; punctuation is stripped on construction.

    Raises:
        InvalidDocument: If the number does not match its type.
    """

    type: DocumentType
    number: str

    def __post_init__(self) -> None:
        try:
            doc_type = DocumentType(self.type)
        except ValueError as e:
            raise InvalidDocument(f"Unknown document type: {self.type}") from e

        number = _NON_DIGITS.sub("", str(self.number))
        if len(number) != doc_type.length:
            raise InvalidDocument(
                f"{doc_type} must have {doc_type.length} digits: {self.number}"
            )
        if len(set(number)) == 1:
            raise InvalidDocument(f"Invalid {doc_type}: {self.number}")

        digits = [int(c) for c in number]
        first_weights, second_weights = doc_type.weights
        body = digits[: doc_type.length - 2]
        first = _check_digit(body, first_weights)
        second = _check_digit(body + [first], second_weights)
        if digits[-2:] != [first, second]:
            raise InvalidDocument(f"Invalid {doc_type} check digits: {self.number}")

        object.__setattr__(self, "type", doc_type)
        object.__setattr__(self, "number", number)

    def __str__(self) -> str:
        return f"{self.type.value}:{self.number}"
