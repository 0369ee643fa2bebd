"""
User API Schemas
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.identity.application.dto.user_dto import UserPage
from src.identity.domain.entities.user import User, UserLimits
from src.quotas.domain.services.quota_policy import QuotaDecision
from src.shared.roles import Role


class LimitsSchema(BaseModel):
    """Resource ceilings; omitted fields keep their current (or default) value"""
    model_config = ConfigDict(extra="forbid")

    max_instances: Optional[int] = Field(None, ge=1)
    max_messages_per_day: Optional[int] = Field(None, ge=1)
    max_contacts: Optional[int] = Field(None, ge=1)
    max_groups: Optional[int] = Field(None, ge=1)
    can_use_webhooks: Optional[bool] = None
    can_use_integrations: Optional[bool] = None


class CreateUserRequest(BaseModel):
    """Create user request schema"""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="User email address")
    role: Role = Field(Role.CLIENT, description="ADMIN or CLIENT")
    limits: Optional[LimitsSchema] = Field(None, description="Overrides for the role defaults")


class UpdateUserRequest(BaseModel):
    """Update user request schema; omitted fields keep their value"""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UpdateLimitsRequest(LimitsSchema):
    """Update limits request schema"""


class LimitsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str
    max_instances: int
    max_messages_per_day: int
    max_contacts: int
    max_groups: int
    can_use_webhooks: bool
    can_use_integrations: bool

    @classmethod
    def from_domain(cls, limits: UserLimits) -> "LimitsResponse":
        return cls(
            user_id=str(limits.user_id),
            max_instances=limits.max_instances,
            max_messages_per_day=limits.max_messages_per_day,
            max_contacts=limits.max_contacts,
            max_groups=limits.max_groups,
            can_use_webhooks=limits.can_use_webhooks,
            can_use_integrations=limits.can_use_integrations,
        )


class UserResponse(BaseModel):
    """User response schema"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="User UUID")
    name: str
    email: str
    role: Role
    is_active: bool
    created_at: datetime
    limits: Optional[LimitsResponse] = None

    @classmethod
    def from_domain(cls, user: User, limits: Optional[UserLimits] = None) -> "UserResponse":
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            limits=LimitsResponse.from_domain(limits) if limits else None,
        )


class UserListResponse(BaseModel):
    """Paginated user list response"""
    items: List[UserResponse]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_page(cls, page: UserPage) -> "UserListResponse":
        return cls(
            items=[UserResponse.from_domain(user, limits) for user, limits in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


class UsageEntry(BaseModel):
    current: int
    limit: int
    remaining: int


class UsageResponse(BaseModel):
    """Current usage against each quota"""
    user_id: str
    usage: Dict[str, UsageEntry]

    @classmethod
    def from_decisions(cls, user_id, decisions: Dict[str, QuotaDecision]) -> "UsageResponse":
        return cls(
            user_id=str(user_id),
            usage={
                kind: UsageEntry(current=d.current, limit=d.limit, remaining=d.remaining)
                for kind, d in decisions.items()
            },
        )
