# src/identity/infrastructure/models/user_model.py

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Enum as SAEnum, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.shared.database.base_model import Base
from src.shared.roles import Role

if TYPE_CHECKING:
    from .user_limits_model import UserLimitsModel


class UserModel(Base):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[Role] = mapped_column(
        SAEnum(Role, name="user_role_enum", native_enum=False, length=16),
        nullable=False,
        default=Role.CLIENT,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    limits: Mapped[Optional["UserLimitsModel"]] = relationship(
        "UserLimitsModel",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_users__role_active", "role", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<UserModel(id={self.id}, email='{self.email}', role={self.role})>"
