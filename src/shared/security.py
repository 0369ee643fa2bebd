from typing import Any, Dict
from uuid import UUID

import jwt

from src.config import get_settings
from src.shared.exceptions import UnauthorizedError
from src.shared.roles import Actor, Role


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT token.

    Args:
        token: The JWT token string to decode

    Returns:
        Dictionary containing the token payload

    Raises:
        UnauthorizedError: If token is invalid, expired, or malformed
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM], options={"verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(f"Invalid token: {e}")


def actor_from_claims(claims: Dict[str, Any]) -> Actor:
    """Build the acting principal from decoded claims (`sub` = user id, `role`)."""
    try:
        user_id = UUID(str(claims["sub"]))
        role = Role(str(claims.get("role") or Role.CLIENT.value).upper())
    except (KeyError, ValueError):
        raise UnauthorizedError("Token is missing a valid subject or role")
    return Actor(user_id=user_id, role=role)
