"""Identity Domain Entities"""
from src.identity.domain.entities.user import PRIVILEGED_LIMITS, User, UserLimits

__all__ = ["User", "UserLimits", "PRIVILEGED_LIMITS"]
