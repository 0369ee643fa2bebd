"""
User Service
Users and their resource ceilings
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import UUID

from src.config import Settings
from src.identity.application.dto.user_dto import UserPage
from src.identity.domain.entities.user import User, UserLimits
from src.identity.domain.exceptions import EmailTakenError, UserNotFoundError
from src.instances.application.services.instance_state_machine import InstanceStateMachine
from src.instances.domain.exceptions import InstanceNotFoundError
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol
from src.shared.exceptions import ForbiddenError
from src.shared.logging import get_logger
from src.shared.roles import Actor, Role
from src.shared.timeutils import utcnow

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


class UserService:
    """
    User management for operators.

    Only privileged actors create, list, update or delete users and change
    limits; a user may read their own account and limits.
    """

    def __init__(
        self,
        uow_factory: Callable[[], ControlPlaneUnitOfWorkProtocol],
        state_machine: InstanceStateMachine,
        settings: Settings,
    ) -> None:
        self._uow_factory = uow_factory
        self._sm = state_machine
        self._settings = settings

    async def create_user(
        self,
        actor: Actor,
        *,
        name: str,
        email: str,
        role: Role = Role.CLIENT,
        limits: Optional[Dict[str, Any]] = None,
    ) -> Tuple[User, UserLimits]:
        """
        Create a user together with their limits record.

        Limits default by role (elevated roles are effectively unlimited);
        explicit values override the defaults.
        """
        self._require_privileged(actor)
        user = User(name=name, email=email, role=role)
        user_limits = UserLimits.defaults_for(user.id, role, self._settings).with_changes(**(limits or {}))

        async with self._uow_factory() as uow:
            if await uow.users.get_by_email(user.email) is not None:
                raise EmailTakenError(user.email)
            await uow.users.add(user)
            await uow.limits.save(user_limits)
            await uow.commit()

        logger.info("user_created", user_id=str(user.id), role=role.value, created_by=str(actor.user_id))
        return user, user_limits

    async def get_user(self, actor: Actor, user_id: UUID) -> User:
        self._require_self_or_privileged(actor, user_id)
        async with self._uow_factory() as uow:
            user = await uow.users.get(user_id)
        if user is None:
            raise UserNotFoundError("User not found", details={"user_id": str(user_id)})
        return user

    async def list_users(self, actor: Actor, *, page: int = 1, limit: int = 10) -> UserPage:
        """All users with their effective limits, newest first."""
        self._require_privileged(actor)
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        async with self._uow_factory() as uow:
            users = await uow.users.list_all(offset=(page - 1) * limit, limit=limit)
            total = await uow.users.count()
            items = []
            for user in users:
                limits = await uow.limits.get(user.id)
                items.append((user, limits or UserLimits.defaults_for(user.id, user.role, self._settings)))
        return UserPage(items=items, total=total, page=page, limit=limit)

    async def update_user(
        self,
        actor: Actor,
        user_id: UUID,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[Role] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[User, UserLimits]:
        """
        Change account fields; omitted fields keep their value.

        Stored limits are left as they are when the role changes.

        Raises:
            UserNotFoundError: Unknown user
            EmailTakenError: Another user already has `email`
        """
        self._require_privileged(actor)
        changes: Dict[str, Any] = {
            k: v
            for k, v in (("name", name), ("email", email), ("role", role), ("is_active", is_active))
            if v is not None
        }

        async with self._uow_factory() as uow:
            user = await uow.users.get(user_id)
            if user is None:
                raise UserNotFoundError("User not found", details={"user_id": str(user_id)})
            updated = replace(user, updated_at=utcnow(), **changes)
            if updated.email != user.email:
                holder = await uow.users.get_by_email(updated.email)
                if holder is not None and holder.id != user_id:
                    raise EmailTakenError(updated.email)
            await uow.users.update(updated)
            limits = await self._effective_limits(uow, user_id)
            await uow.commit()

        logger.info(
            "user_updated",
            user_id=str(user_id),
            updated_by=str(actor.user_id),
            fields=sorted(changes),
        )
        return updated, limits

    async def delete_user(self, actor: Actor, user_id: UUID) -> None:
        """
        Remove a user with everything they own.

        Instances go through the lifecycle delete, so each is removed from
        the gateway on a best-effort basis. Message history and limits are
        removed with the account.

        Raises:
            UserNotFoundError: Unknown user
        """
        self._require_privileged(actor)
        async with self._uow_factory() as uow:
            if await uow.users.get(user_id) is None:
                raise UserNotFoundError("User not found", details={"user_id": str(user_id)})

        removed = 0
        while True:
            async with self._uow_factory() as uow:
                batch = await uow.instances.list_by_owner(user_id, offset=0, limit=MAX_PAGE_SIZE)
            if not batch:
                break
            for instance in batch:
                try:
                    await self._sm.delete(instance.id)
                except InstanceNotFoundError:
                    # removed concurrently
                    continue
                removed += 1

        async with self._uow_factory() as uow:
            await uow.messages.delete_for_user(user_id)
            await uow.limits.delete(user_id)
            await uow.users.delete(user_id)
            await uow.commit()

        logger.info(
            "user_deleted",
            user_id=str(user_id),
            deleted_by=str(actor.user_id),
            instances_removed=removed,
        )

    async def get_limits(self, actor: Actor, user_id: UUID) -> UserLimits:
        self._require_self_or_privileged(actor, user_id)
        async with self._uow_factory() as uow:
            return await self._effective_limits(uow, user_id)

    async def update_limits(self, actor: Actor, user_id: UUID, **changes: Any) -> UserLimits:
        """Upsert: a user relying on defaults gets an explicit record."""
        self._require_privileged(actor)
        async with self._uow_factory() as uow:
            current = await self._effective_limits(uow, user_id)
            updated = current.with_changes(**changes)
            await uow.limits.save(updated)
            await uow.commit()

        logger.info(
            "user_limits_updated",
            user_id=str(user_id),
            updated_by=str(actor.user_id),
            fields=sorted(k for k, v in changes.items() if v is not None),
        )
        return updated

    async def _effective_limits(self, uow: ControlPlaneUnitOfWorkProtocol, user_id: UUID) -> UserLimits:
        user = await uow.users.get(user_id)
        if user is None:
            raise UserNotFoundError("User not found", details={"user_id": str(user_id)})
        limits = await uow.limits.get(user_id)
        return limits or UserLimits.defaults_for(user_id, user.role, self._settings)

    @staticmethod
    def _require_privileged(actor: Actor) -> None:
        if not actor.is_privileged:
            raise ForbiddenError("Only administrators can perform this action")

    @staticmethod
    def _require_self_or_privileged(actor: Actor, user_id: UUID) -> None:
        if not actor.can_access(user_id):
            raise ForbiddenError("You can only access your own account")
