import uuid
from uuid import UUID

from p2p_transfer.application.interfaces import IdGenerator


class UuidGenerator(IdGenerator):
    """Random (version 4) UUIDs."""

    def new_id(self) -> UUID:
        return uuid.uuid4()
