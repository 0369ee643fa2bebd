"""Identity domain exceptions."""
from src.shared.exceptions import ConflictError, NotFoundError


class UserNotFoundError(NotFoundError):
    code = "user_not_found"


class EmailTakenError(ConflictError):
    code = "email_taken"

    def __init__(self, email: str) -> None:
        super().__init__(f"A user with email '{email}' already exists", details={"email": email})
