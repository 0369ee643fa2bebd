# src/identity/api/routes/users.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.dependencies import get_current_actor, get_quota_ledger, get_user_service, require_role
from src.identity.api.schemas import (
    CreateUserRequest,
    LimitsResponse,
    UpdateLimitsRequest,
    UpdateUserRequest,
    UsageResponse,
    UserListResponse,
    UserResponse,
)
from src.identity.application.services.user_service import UserService
from src.quotas.application.services.quota_ledger import QuotaLedger
from src.shared.roles import Actor, Role

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: CreateUserRequest,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    svc: UserService = Depends(get_user_service),
) -> UserResponse:
    limits = payload.limits.model_dump(exclude_none=True) if payload.limits else None
    user, user_limits = await svc.create_user(
        actor, name=payload.name, email=str(payload.email), role=payload.role, limits=limits
    )
    return UserResponse.from_domain(user, user_limits)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(require_role(Role.ADMIN)),
    svc: UserService = Depends(get_user_service),
) -> UserListResponse:
    return UserListResponse.from_page(await svc.list_users(actor, page=page, limit=limit))


@router.get("/me", response_model=UserResponse)
async def me(
    actor: Actor = Depends(get_current_actor),
    svc: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await svc.get_user(actor, actor.user_id)
    return UserResponse.from_domain(user, await svc.get_limits(actor, actor.user_id))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    actor: Actor = Depends(get_current_actor),
    svc: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await svc.get_user(actor, user_id)
    return UserResponse.from_domain(user, await svc.get_limits(actor, user_id))


@router.get("/{user_id}/limits", response_model=LimitsResponse)
async def get_limits(
    user_id: UUID,
    actor: Actor = Depends(get_current_actor),
    svc: UserService = Depends(get_user_service),
) -> LimitsResponse:
    return LimitsResponse.from_domain(await svc.get_limits(actor, user_id))


@router.put("/{user_id}/limits", response_model=LimitsResponse)
async def update_limits(
    user_id: UUID,
    payload: UpdateLimitsRequest,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    svc: UserService = Depends(get_user_service),
) -> LimitsResponse:
    limits = await svc.update_limits(actor, user_id, **payload.model_dump(exclude_none=True))
    return LimitsResponse.from_domain(limits)


@router.get("/{user_id}/usage", response_model=UsageResponse)
async def get_usage(
    user_id: UUID,
    actor: Actor = Depends(get_current_actor),
    svc: UserService = Depends(get_user_service),
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> UsageResponse:
    # access check and 404 for unknown users
    await svc.get_user(actor, user_id)
    return UsageResponse.from_decisions(user_id, await ledger.usage(user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    payload: UpdateUserRequest,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    svc: UserService = Depends(get_user_service),
) -> UserResponse:
    changes = payload.model_dump(exclude_none=True)
    if "email" in changes:
        changes["email"] = str(changes["email"])
    user, limits = await svc.update_user(actor, user_id, **changes)
    return UserResponse.from_domain(user, limits)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    actor: Actor = Depends(require_role(Role.ADMIN)),
    svc: UserService = Depends(get_user_service),
) -> None:
    await svc.delete_user(actor, user_id)
