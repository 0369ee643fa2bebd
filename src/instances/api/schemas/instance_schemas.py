"""
Instance API Schemas
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.instances.application.dto.instance_dto import (
    ConnectView,
    CreatedInstanceView,
    InstancePage,
    StatusView,
)
from src.instances.domain.entities.instance import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    Instance,
    InstanceSettings,
    InstanceState,
    Integration,
)


class InstanceSettingsSchema(BaseModel):
    """Gateway behavior flags; accepts camelCase (rejectCall) or snake_case."""
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    reject_call: bool = False
    msg_call: str = ""
    groups_ignore: bool = False
    always_online: bool = False
    read_messages: bool = False
    read_status: bool = False
    sync_full_history: bool = False

    def to_domain(self) -> InstanceSettings:
        return InstanceSettings(**self.model_dump(by_alias=False))

    @classmethod
    def from_domain(cls, settings: InstanceSettings) -> "InstanceSettingsSchema":
        return cls(**settings.to_dict())


class CreateInstanceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    integration: Integration = Integration.WHATSAPP_BAILEYS
    settings: Optional[InstanceSettingsSchema] = None


class UpdateInstanceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    settings: InstanceSettingsSchema


class InstanceResponse(BaseModel):
    """Instance view; the pairing token is never exposed."""
    model_config = ConfigDict(extra="forbid")

    id: UUID
    owner_id: UUID
    name: str
    state: InstanceState
    phone_number: Optional[str] = None
    integration: Integration
    settings: InstanceSettingsSchema
    last_error: Optional[str] = None
    state_changed_at: datetime
    created_at: datetime

    @classmethod
    def from_domain(cls, instance: Instance) -> "InstanceResponse":
        return cls(
            id=instance.id,
            owner_id=instance.owner_id,
            name=instance.name,
            state=instance.state,
            phone_number=instance.phone_number,
            integration=instance.integration,
            settings=InstanceSettingsSchema.from_domain(instance.settings),
            last_error=instance.last_error,
            state_changed_at=instance.state_changed_at,
            created_at=instance.created_at,
        )


class CreatedInstanceResponse(InstanceResponse):
    qr_code: Optional[str] = None

    @classmethod
    def from_view(cls, view: CreatedInstanceView) -> "CreatedInstanceResponse":
        return cls(**InstanceResponse.from_domain(view.instance).model_dump(), qr_code=view.qr_code)


class ConnectResponse(BaseModel):
    instance: InstanceResponse
    qr_code: Optional[str] = None
    pairing_code: Optional[str] = None

    @classmethod
    def from_view(cls, view: ConnectView) -> "ConnectResponse":
        return cls(
            instance=InstanceResponse.from_domain(view.instance),
            qr_code=view.qr_code,
            pairing_code=view.pairing_code,
        )


class InstanceStatusResponse(BaseModel):
    id: UUID
    state: InstanceState
    gateway_state: Optional[str] = None
    phone_number: Optional[str] = None
    qr_code: Optional[str] = None

    @classmethod
    def from_view(cls, view: StatusView) -> "InstanceStatusResponse":
        return cls(
            id=view.instance.id,
            state=view.instance.state,
            gateway_state=view.gateway_state,
            phone_number=view.instance.phone_number,
            qr_code=view.qr_code,
        )


class InstanceListResponse(BaseModel):
    """Paginated instance list response"""
    items: List[InstanceResponse]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_page(cls, page: InstancePage) -> "InstanceListResponse":
        return cls(
            items=[InstanceResponse.from_domain(i) for i in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )
