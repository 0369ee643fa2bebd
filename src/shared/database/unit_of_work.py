"""
SQLAlchemy Implementation of Unit of Work
Manages database transactions with async SQLAlchemy sessions
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.shared.exceptions import StorageFailureError
from src.shared.logging import get_logger

logger = get_logger(__name__)


class SQLAlchemyUnitOfWork:
    """
    SQLAlchemy-based Unit of Work implementation.

    Opens one session per context, so concurrent operations each get their
    own unit of work. Everything inside the context is atomic; persistence
    errors leave it as StorageFailureError.

    Usage:
        async with uow:
            entity = await uow.repository.get(id)
            await uow.repository.save(entity)
            await uow.commit()
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self._committed = False

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its context")
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        self._session = self._session_factory()
        self._committed = False
        self._on_session_opened(self._session)
        return self

    def _on_session_opened(self, session: AsyncSession) -> None:
        """Hook for subclasses to bind repositories to the new session."""

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if exc_type is not None or not self._committed:
                await self.rollback()
        finally:
            await self.session.close()
            self._session = None
        if isinstance(exc_val, SQLAlchemyError):
            logger.error("UnitOfWork rolled back due to storage error", error=str(exc_val))
            raise StorageFailureError(f"Storage operation failed: {exc_val.__class__.__name__}") from exc_val

    async def commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            StorageFailureError: If commit fails
        """
        try:
            await self.session.commit()
            self._committed = True
        except SQLAlchemyError as e:
            await self.rollback()
            logger.error("UnitOfWork commit failed", error=str(e))
            raise StorageFailureError(f"Commit failed: {e.__class__.__name__}") from e

    async def rollback(self) -> None:
        """Discard all changes made within this UoW context."""
        await self.session.rollback()
        self._committed = False
