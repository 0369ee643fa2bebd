# src/shared/roles.py

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """
    User roles in the control plane.

    - ADMIN: operator, manages users/limits and may act on any instance
    - CLIENT: may only act on instances it owns
    """
    ADMIN = "ADMIN"
    CLIENT = "CLIENT"


# Role hierarchy levels
_ROLE_HIERARCHY = {
    Role.ADMIN: 100,
    Role.CLIENT: 10,
}


def has_min_role(actual_role: Role, required_role: Role) -> bool:
    """True if actual_role has at least the privileges of required_role."""
    return _ROLE_HIERARCHY.get(actual_role, 0) >= _ROLE_HIERARCHY.get(required_role, 0)


def is_privileged(role: Role) -> bool:
    return has_min_role(role, Role.ADMIN)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an orchestrator operation."""
    user_id: UUID
    role: Role = Role.CLIENT

    @property
    def is_privileged(self) -> bool:
        return is_privileged(self.role)

    def can_access(self, owner_id: UUID) -> bool:
        return self.is_privileged or self.user_id == owner_id
