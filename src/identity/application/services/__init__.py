from src.identity.application.services.user_service import UserService

__all__ = ["UserService"]
