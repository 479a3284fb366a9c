from uuid import UUID

from p2p_transfer.domain.exceptions import InvalidIdentifier


def parse_uuid(value: UUID | str, field: str = "id") -> UUID:
    """Parse a caller-supplied identifier, raising InvalidIdentifier."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise InvalidIdentifier(f"Invalid {field}: {value!r}") from e
