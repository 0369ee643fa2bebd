"""
Repository interfaces for users and their limits.
Implementations never commit; the Unit of Work owns the transaction.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from src.identity.domain.entities.user import User, UserLimits


class UserRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> Optional[User]:
        """Find user by ID, None when absent."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def add(self, user: User) -> User:
        """
        Stage a new user.

        Raises:
            EmailTakenError: If the email is already registered
        """

    @abstractmethod
    async def update(self, user: User) -> User:
        """
        Stage changed profile fields.

        Raises:
            EmailTakenError: If the new email belongs to another user
        """

    @abstractmethod
    async def delete(self, user_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_all(self, *, offset: int = 0, limit: int = 10) -> List[User]:
        """Newest first."""

    @abstractmethod
    async def count(self) -> int:
        pass


class UserLimitsRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> Optional[UserLimits]:
        """Explicit limits record, None when the user relies on defaults."""

    @abstractmethod
    async def save(self, limits: UserLimits) -> UserLimits:
        """Insert or replace the limits record for `limits.user_id`."""

    @abstractmethod
    async def delete(self, user_id: UUID) -> bool:
        """Remove the explicit record; the user falls back to defaults."""
