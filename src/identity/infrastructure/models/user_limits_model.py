# src/identity/infrastructure/models/user_limits_model.py

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.shared.database.base_model import Base

if TYPE_CHECKING:
    from .user_model import UserModel


class UserLimitsModel(Base):
    __tablename__ = "user_limits"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    max_instances: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_messages_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    max_contacts: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    max_groups: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    can_use_webhooks: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_use_integrations: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user: Mapped["UserModel"] = relationship("UserModel", back_populates="limits")

    __table_args__ = (
        CheckConstraint("max_instances >= 1", name="chk_user_limits_max_instances"),
        CheckConstraint("max_messages_per_day >= 1", name="chk_user_limits_max_messages"),
        CheckConstraint("max_contacts >= 1", name="chk_user_limits_max_contacts"),
        CheckConstraint("max_groups >= 1", name="chk_user_limits_max_groups"),
    )
