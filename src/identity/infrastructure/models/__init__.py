from .user_model import UserModel
from .user_limits_model import UserLimitsModel

__all__ = ["UserModel", "UserLimitsModel"]
