# src/instances/infrastructure/models/instance_model.py

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.shared.database.base_model import Base


class InstanceModel(Base):
    __tablename__ = "instances"

    owner_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # the gateway keys instances by name
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="DISCONNECTED")
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    pairing_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    integration: Mapped[str] = mapped_column(String(32), nullable=False, default="WHATSAPP-BAILEYS")
    settings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    state_changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_instances__owner", "owner_id"),
        Index("ix_instances__state", "state"),
    )

    def __repr__(self) -> str:
        return f"<InstanceModel(id={self.id}, name='{self.name}', state={self.state})>"
