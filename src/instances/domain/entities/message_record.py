"""MessageRecord: append-only audit of every attempted send."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from src.gateway.domain.protocols import MessageKind
from src.shared.timeutils import utcnow


class MessageStatus(str, Enum):
    SENT = "SENT"
    FAILED = "FAILED"


@dataclass(frozen=True)
class MessageRecord:
    """
    One record per send attempt.

    `user_id` is the instance owner at send time so the daily counter is
    unaffected by later instance deletion.
    """
    instance_id: UUID
    user_id: UUID
    to: str
    sender: str
    body: str
    status: MessageStatus
    type: MessageKind = MessageKind.TEXT
    media_url: Optional[str] = None
    gateway_message_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
    id: UUID = field(default_factory=uuid4)
