from .user_mapper import UserLimitsMapper, UserMapper

__all__ = ["UserMapper", "UserLimitsMapper"]
