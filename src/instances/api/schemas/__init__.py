from src.instances.api.schemas.instance_schemas import (
    ConnectResponse,
    CreatedInstanceResponse,
    CreateInstanceRequest,
    InstanceListResponse,
    InstanceResponse,
    InstanceSettingsSchema,
    InstanceStatusResponse,
    UpdateInstanceRequest,
)
from src.instances.api.schemas.message_schemas import (
    CheckNumberRequest,
    CheckNumberResponse,
    SendMessageRequest,
    SendMessageResponse,
)

__all__ = [
    "ConnectResponse",
    "CreatedInstanceResponse",
    "CreateInstanceRequest",
    "InstanceListResponse",
    "InstanceResponse",
    "InstanceSettingsSchema",
    "InstanceStatusResponse",
    "UpdateInstanceRequest",
    "CheckNumberRequest",
    "CheckNumberResponse",
    "SendMessageRequest",
    "SendMessageResponse",
]
