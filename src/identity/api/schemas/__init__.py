from src.identity.api.schemas.user_schemas import (
    CreateUserRequest,
    LimitsResponse,
    LimitsSchema,
    UpdateLimitsRequest,
    UpdateUserRequest,
    UsageResponse,
    UserListResponse,
    UserResponse,
)

__all__ = [
    "CreateUserRequest",
    "LimitsResponse",
    "LimitsSchema",
    "UpdateLimitsRequest",
    "UpdateUserRequest",
    "UsageResponse",
    "UserListResponse",
    "UserResponse",
]
