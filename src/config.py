# src/config.py

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Central application settings (Pydantic v2).

    - Aliases match the .env keys (APP_NAME, ENV, JWT_ALG, EVOLUTION_API_URL, ...)
    - Gateway, lock and store clients are built from these values at startup
      and injected; nothing reads them as process-wide state afterwards.
    """

    # ------------------------------------------------------------------------------------
    # App / API
    # ------------------------------------------------------------------------------------
    PROJECT_NAME: str = Field(default="instance-control-plane", alias="APP_NAME")
    ENVIRONMENT: str = Field(default="dev", alias="ENV")  # dev|staging|prod
    PROJECT_VERSION: str = Field(default="1.0.0")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Optional[str] = Field(default=None)  # json|console, derived from ENV when unset

    # ------------------------------------------------------------------------------------
    # Database / Redis
    # ------------------------------------------------------------------------------------
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./dev.db",
        description="Async SQLAlchemy URL (postgresql+asyncpg in production)",
    )
    DB_CREATE_ALL: bool = Field(default=True, description="Create tables on startup (dev only)")
    DATABASE_POOL_SIZE: int = Field(default=10)
    DATABASE_MAX_OVERFLOW: int = Field(default=20)
    REDIS_URL: Optional[str] = Field(default="redis://localhost:6379/0")
    LOCK_BACKEND: str = Field(default="memory")  # memory|redis
    LOCK_TTL_SECONDS: int = Field(default=120, ge=1)

    # ------------------------------------------------------------------------------------
    # JWT (verification only; issuance lives elsewhere)
    # ------------------------------------------------------------------------------------
    JWT_SECRET: str = Field(default="super-long-very-random-secret-change-me-now")
    JWT_ALGORITHM: str = Field(default="HS256", alias="JWT_ALG")

    # ------------------------------------------------------------------------------------
    # Gateway
    # ------------------------------------------------------------------------------------
    EVOLUTION_API_URL: str = Field(default="http://localhost:8080")
    EVOLUTION_API_KEY: str = Field(default="change-me")
    GATEWAY_TIMEOUT_SECONDS: float = Field(default=15.0)

    # ------------------------------------------------------------------------------------
    # Lifecycle / quota policy
    # ------------------------------------------------------------------------------------
    TIMEZONE: str = Field(default="UTC")
    STATUS_FAILURE_THRESHOLD: int = Field(default=3, ge=1)
    CONNECTING_TIMEOUT_SECONDS: int = Field(default=0, ge=0)  # 0 disables expiry
    INSTANCE_QUEUE_WAIT_SECONDS: float = Field(default=30.0)
    ADMISSION_WAIT_SECONDS: float = Field(default=60.0)
    RECONCILE_INTERVAL_SECONDS: int = Field(default=30)

    DEFAULT_MAX_INSTANCES: int = Field(default=1, ge=1)
    DEFAULT_MAX_MESSAGES_PER_DAY: int = Field(default=1000, ge=1)
    DEFAULT_MAX_CONTACTS: int = Field(default=100, ge=1)
    DEFAULT_MAX_GROUPS: int = Field(default=10, ge=1)

    # ------------------------------------------------------------------------------------
    # Feature Flags / Misc
    # ------------------------------------------------------------------------------------
    TESTING: bool = Field(default=False)

    # ------------------------------------------------------------------------------------
    # Helper properties
    # ------------------------------------------------------------------------------------
    @property
    def is_dev(self) -> bool:
        return self.ENVIRONMENT.lower() in {"dev", "development", "local"}

    @property
    def is_staging(self) -> bool:
        return self.ENVIRONMENT.lower() in {"stage", "staging"}

    @property
    def is_prod(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # ------------------------------------------------------------------------------------
    # Pydantic v2 settings config
    # ------------------------------------------------------------------------------------
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "populate_by_name": True,   # enable aliases
        "extra": "ignore",          # don't crash on unrelated env keys
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
