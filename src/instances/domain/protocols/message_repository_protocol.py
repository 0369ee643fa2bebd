"""Message record repository protocol."""
from datetime import datetime
from typing import List, Protocol
from uuid import UUID

from src.instances.domain.entities.message_record import MessageRecord


class MessageRepositoryProtocol(Protocol):
    """Append-only store of send attempts."""

    async def add(self, record: MessageRecord) -> MessageRecord:
        ...

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        """Records attributed to `user_id` with timestamp >= `since`."""
        ...

    async def list_for_instance(self, instance_id: UUID, *, limit: int = 50) -> List[MessageRecord]:
        ...

    async def delete_for_user(self, user_id: UUID) -> int:
        """Drop a removed user's history; returns the number of records."""
        ...
