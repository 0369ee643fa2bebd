from .user_repository_impl import UserLimitsRepositoryImpl, UserRepositoryImpl

__all__ = ["UserRepositoryImpl", "UserLimitsRepositoryImpl"]
