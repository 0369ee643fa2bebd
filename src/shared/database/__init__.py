from .database import (
    create_database_engine as init_database,
    close_database_engine as close_database,
    create_all_tables,
    get_engine,
    get_session_factory,
    get_async_session,
)
from .base_model import Base
from .unit_of_work import SQLAlchemyUnitOfWork

__all__ = [
    "Base",
    "SQLAlchemyUnitOfWork",
    "get_async_session",
    "init_database",
    "close_database",
    "create_all_tables",
    "get_engine",
    "get_session_factory",
]
