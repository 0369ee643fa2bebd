"""
Test console API Schemas (send message / check number / QR)
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.gateway.domain.protocols import MessageKind, NumberCheck
from src.instances.domain.entities.message_record import MessageRecord, MessageStatus


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)

    instance_id: UUID = Field(..., alias="instanceId")
    number: str = Field(..., min_length=5, max_length=32)
    message: str = Field(..., min_length=1, max_length=4096)
    type: MessageKind = MessageKind.TEXT
    media_url: Optional[str] = Field(None, alias="mediaUrl")

    @model_validator(mode="before")
    @classmethod
    def _upper_type(cls, data):
        if isinstance(data, dict) and isinstance(data.get("type"), str):
            data = {**data, "type": data["type"].upper()}
        return data

    @model_validator(mode="after")
    def _media_needs_url(self) -> "SendMessageRequest":
        if self.type == MessageKind.MEDIA and not self.media_url:
            raise ValueError("mediaUrl is required for media messages")
        return self


class SendMessageResponse(BaseModel):
    message_id: Optional[str] = None
    record_id: UUID
    status: MessageStatus
    timestamp: datetime

    @classmethod
    def from_record(cls, record: MessageRecord) -> "SendMessageResponse":
        return cls(
            message_id=record.gateway_message_id,
            record_id=record.id,
            status=record.status,
            timestamp=record.timestamp,
        )


class CheckNumberRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)

    instance_id: UUID = Field(..., alias="instanceId")
    number: str = Field(..., min_length=5, max_length=32)


class CheckNumberResponse(BaseModel):
    number: str
    exists: bool
    jid: Optional[str] = None

    @classmethod
    def from_check(cls, check: NumberCheck) -> "CheckNumberResponse":
        return cls(number=check.number, exists=check.exists, jid=check.jid)
