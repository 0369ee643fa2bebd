# src/instances/infrastructure/repositories/instance_repository.py
from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.instances.domain.entities.instance import Instance, InstanceState
from src.instances.domain.exceptions import DuplicateInstanceNameError, InstanceNotFoundError
from src.instances.infrastructure.mappers.instance_mapper import InstanceMapper
from src.instances.infrastructure.models.instance_model import InstanceModel


class InstanceRepository:
    """
    SQLAlchemy implementation of InstanceRepositoryProtocol.
    - No explicit commits here; the Unit of Work owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._mapper = InstanceMapper()

    async def get(self, instance_id: UUID) -> Optional[Instance]:
        model = await self._session.get(InstanceModel, instance_id, populate_existing=True)
        return self._mapper.to_domain(model) if model else None

    async def get_by_name(self, name: str) -> Optional[Instance]:
        stmt = select(InstanceModel).where(InstanceModel.name == name)
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        return self._mapper.to_domain(model) if model else None

    async def add(self, instance: Instance) -> Instance:
        self._session.add(self._mapper.to_model(instance))
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise DuplicateInstanceNameError(instance.name) from e
        return instance

    async def update(self, instance: Instance) -> Instance:
        model = await self._session.get(InstanceModel, instance.id)
        if model is None:
            raise InstanceNotFoundError(instance.id)
        self._mapper.apply(instance, model)
        await self._session.flush()
        return instance

    async def delete(self, instance_id: UUID) -> bool:
        result = await self._session.execute(
            delete(InstanceModel).where(InstanceModel.id == instance_id)
        )
        return (result.rowcount or 0) > 0

    async def list_by_owner(
        self, owner_id: Optional[UUID], *, offset: int = 0, limit: int = 50
    ) -> Sequence[Instance]:
        stmt = select(InstanceModel)
        if owner_id is not None:
            stmt = stmt.where(InstanceModel.owner_id == owner_id)
        stmt = stmt.order_by(InstanceModel.created_at.desc(), InstanceModel.name).offset(offset).limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [self._mapper.to_domain(m) for m in rows]

    async def count_by_owner(self, owner_id: Optional[UUID]) -> int:
        stmt = select(func.count()).select_from(InstanceModel)
        if owner_id is not None:
            stmt = stmt.where(InstanceModel.owner_id == owner_id)
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_by_state(self, state: InstanceState, *, limit: int = 100) -> List[Instance]:
        stmt = (
            select(InstanceModel)
            .where(InstanceModel.state == state.value)
            .order_by(InstanceModel.state_changed_at)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [self._mapper.to_domain(m) for m in rows]
