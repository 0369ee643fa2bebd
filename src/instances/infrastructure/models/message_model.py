# src/instances/infrastructure/models/message_model.py

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.shared.database.base_model import Base


class MessageModel(Base):
    """
    Append-only send audit.

    No FK to instances: records outlive the instance so the daily
    counter is not reset by deleting it.
    """
    __tablename__ = "messages"

    instance_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    to_number: Mapped[str] = mapped_column(String(64), nullable=False)
    from_number: Mapped[str] = mapped_column(String(64), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="TEXT")
    media_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gateway_message_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_messages__user_timestamp", "user_id", "timestamp"),
        Index("ix_messages__instance", "instance_id"),
    )
