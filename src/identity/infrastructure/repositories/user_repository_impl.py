# src/identity/infrastructure/repositories/user_repository_impl.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.identity.domain.entities.user import User, UserLimits
from src.identity.domain.exceptions import EmailTakenError, UserNotFoundError
from src.identity.domain.repositories.user_repository import UserLimitsRepository, UserRepository
from src.identity.infrastructure.mappers.user_mapper import UserLimitsMapper, UserMapper
from src.identity.infrastructure.models.user_limits_model import UserLimitsModel
from src.identity.infrastructure.models.user_model import UserModel


class UserRepositoryImpl(UserRepository):
    """
    SQLAlchemy implementation of the UserRepository.
    - No explicit commits here; let services/UoW manage transactions.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._mapper = UserMapper()

    async def get(self, user_id: UUID) -> Optional[User]:
        model = await self._session.get(UserModel, user_id)
        return self._mapper.to_domain(model) if model else None

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.email == email.strip().lower())
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        return self._mapper.to_domain(model) if model else None

    async def add(self, user: User) -> User:
        self._session.add(self._mapper.to_model(user))
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise EmailTakenError(user.email) from e
        return user

    async def update(self, user: User) -> User:
        model = await self._session.get(UserModel, user.id)
        if model is None:
            raise UserNotFoundError("User not found", details={"user_id": str(user.id)})
        model.name = user.name
        model.email = user.email
        model.role = user.role
        model.is_active = user.is_active
        try:
            await self._session.flush()
        except IntegrityError as e:
            await self._session.rollback()
            raise EmailTakenError(user.email) from e
        return user

    async def delete(self, user_id: UUID) -> bool:
        result = await self._session.execute(delete(UserModel).where(UserModel.id == user_id))
        return (result.rowcount or 0) > 0

    async def list_all(self, *, offset: int = 0, limit: int = 10) -> List[User]:
        stmt = select(UserModel).order_by(UserModel.created_at.desc(), UserModel.email).offset(offset).limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [self._mapper.to_domain(m) for m in rows]

    async def count(self) -> int:
        return int((await self._session.execute(select(func.count()).select_from(UserModel))).scalar_one())


class UserLimitsRepositoryImpl(UserLimitsRepository):

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._mapper = UserLimitsMapper()

    async def _get_model(self, user_id: UUID) -> Optional[UserLimitsModel]:
        stmt = select(UserLimitsModel).where(UserLimitsModel.user_id == user_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get(self, user_id: UUID) -> Optional[UserLimits]:
        model = await self._get_model(user_id)
        return self._mapper.to_domain(model) if model else None

    async def save(self, limits: UserLimits) -> UserLimits:
        model = await self._get_model(limits.user_id)
        if model is None:
            model = UserLimitsModel(user_id=limits.user_id)
            self._session.add(model)
        self._mapper.apply(limits, model)
        await self._session.flush()
        return limits

    async def delete(self, user_id: UUID) -> bool:
        result = await self._session.execute(
            delete(UserLimitsModel).where(UserLimitsModel.user_id == user_id)
        )
        return (result.rowcount or 0) > 0
