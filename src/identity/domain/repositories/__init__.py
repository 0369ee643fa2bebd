from src.identity.domain.repositories.user_repository import UserLimitsRepository, UserRepository

__all__ = ["UserRepository", "UserLimitsRepository"]
