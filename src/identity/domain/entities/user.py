"""
User and UserLimits entities.

Credentials are not part of this model; identity is asserted by the
token verified at the HTTP edge.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from src.shared.exceptions import ValidationError
from src.shared.roles import Role, is_privileged
from src.shared.timeutils import utcnow

# Ceilings granted to elevated roles when no explicit limits are given.
PRIVILEGED_LIMITS: Dict[str, Any] = {
    "max_instances": 999,
    "max_messages_per_day": 999_999,
    "max_contacts": 999_999,
    "max_groups": 999_999,
    "can_use_webhooks": True,
    "can_use_integrations": True,
}


@dataclass
class User:
    """
    Account that owns instances.

    Attributes:
        name: Display name (2-50 chars)
        email: Unique login/contact address
        role: ADMIN operators act on anything, CLIENT users on their own instances
        is_active: Inactive users cannot be resolved as actors
    """
    name: str
    email: str
    role: Role = Role.CLIENT
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.name = self.name.strip()
        self.email = self.email.strip().lower()
        if not 2 <= len(self.name) <= 50:
            raise ValidationError("User name must be between 2 and 50 characters")
        if "@" not in self.email:
            raise ValidationError("Invalid email address")

    @property
    def is_privileged(self) -> bool:
        return is_privileged(self.role)


@dataclass(frozen=True)
class UserLimits:
    """Per-user resource ceilings. Ceilings are integers >= 1."""
    user_id: UUID
    max_instances: int = 1
    max_messages_per_day: int = 1000
    max_contacts: int = 100
    max_groups: int = 10
    can_use_webhooks: bool = False
    can_use_integrations: bool = False

    def __post_init__(self) -> None:
        for name in ("max_instances", "max_messages_per_day", "max_contacts", "max_groups"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValidationError(f"{name} must be an integer >= 1", details={"field": name})

    @classmethod
    def defaults_for(cls, user_id: UUID, role: Role, settings: Optional[Any] = None) -> UserLimits:
        """
        System defaults for a user without an explicit limits record.

        Elevated roles get effectively unlimited ceilings; everyone else gets
        the configured defaults.
        """
        if is_privileged(role):
            return cls(user_id=user_id, **PRIVILEGED_LIMITS)
        if settings is None:
            return cls(user_id=user_id)
        return cls(
            user_id=user_id,
            max_instances=settings.DEFAULT_MAX_INSTANCES,
            max_messages_per_day=settings.DEFAULT_MAX_MESSAGES_PER_DAY,
            max_contacts=settings.DEFAULT_MAX_CONTACTS,
            max_groups=settings.DEFAULT_MAX_GROUPS,
        )

    def with_changes(self, **changes: Any) -> UserLimits:
        """Return a copy with the given (non-None) fields replaced."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
