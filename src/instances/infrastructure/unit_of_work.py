"""
Control Plane Unit of Work
Coordinates user, limits, instance and message repositories within a transaction
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from src.identity.infrastructure.repositories.user_repository_impl import (
    UserLimitsRepositoryImpl,
    UserRepositoryImpl,
)
from src.instances.infrastructure.repositories.instance_repository import InstanceRepository
from src.instances.infrastructure.repositories.message_repository import MessageRepository
from src.shared.database.unit_of_work import SQLAlchemyUnitOfWork


class ControlPlaneUnitOfWork(SQLAlchemyUnitOfWork):
    """
    Unit of Work for the control plane.

    Usage:
        async with uow:
            instance = await uow.instances.get(instance_id)
            await uow.messages.add(record)
            await uow.commit()
    """

    users: UserRepositoryImpl
    limits: UserLimitsRepositoryImpl
    instances: InstanceRepository
    messages: MessageRepository

    def _on_session_opened(self, session: AsyncSession) -> None:
        self.users = UserRepositoryImpl(session)
        self.limits = UserLimitsRepositoryImpl(session)
        self.instances = InstanceRepository(session)
        self.messages = MessageRepository(session)
