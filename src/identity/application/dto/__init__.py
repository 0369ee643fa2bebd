from src.identity.application.dto.user_dto import UserPage

__all__ = ["UserPage"]
