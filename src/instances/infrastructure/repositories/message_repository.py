# src/instances/infrastructure/repositories/message_repository.py
from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.instances.domain.entities.message_record import MessageRecord
from src.instances.infrastructure.mappers.instance_mapper import MessageMapper
from src.instances.infrastructure.models.message_model import MessageModel
from src.shared.timeutils import as_utc


class MessageRepository:
    """Append-only; records leave only together with their owner."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._mapper = MessageMapper()

    async def add(self, record: MessageRecord) -> MessageRecord:
        self._session.add(self._mapper.to_model(record))
        await self._session.flush()
        return record

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(MessageModel)
            .where(MessageModel.user_id == user_id, MessageModel.timestamp >= as_utc(since))
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_for_instance(self, instance_id: UUID, *, limit: int = 50) -> List[MessageRecord]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.instance_id == instance_id)
            .order_by(MessageModel.timestamp.desc())
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [self._mapper.to_domain(m) for m in rows]

    async def delete_for_user(self, user_id: UUID) -> int:
        result = await self._session.execute(delete(MessageModel).where(MessageModel.user_id == user_id))
        return result.rowcount or 0
