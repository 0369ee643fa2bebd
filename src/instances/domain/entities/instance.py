"""
Instance Entity
A logical WhatsApp session owned by one user and keyed by name at the gateway.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from src.shared.exceptions import ValidationError
from src.shared.timeutils import utcnow

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


class InstanceState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    FAILED = "FAILED"


class Integration(str, Enum):
    WHATSAPP_BAILEYS = "WHATSAPP-BAILEYS"
    WHATSAPP_BUSINESS = "WHATSAPP-BUSINESS"
    EVOLUTION = "EVOLUTION"


@dataclass(frozen=True)
class InstanceSettings:
    """Behavioral flags passed through to the gateway unchanged."""
    reject_call: bool = False
    msg_call: str = ""
    groups_ignore: bool = False
    always_online: bool = False
    read_messages: bool = False
    read_status: bool = False
    sync_full_history: bool = False

    _GATEWAY_KEYS = {
        "reject_call": "rejectCall",
        "msg_call": "msgCall",
        "groups_ignore": "groupsIgnore",
        "always_online": "alwaysOnline",
        "read_messages": "readMessages",
        "read_status": "readStatus",
        "sync_full_history": "syncFullHistory",
    }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_gateway(self) -> Dict[str, Any]:
        return {self._GATEWAY_KEYS[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> InstanceSettings:
        if not data:
            return cls()
        known = {k: v for k, v in data.items() if k in cls._GATEWAY_KEYS}
        return cls(**known)


def validate_instance_name(name: str) -> str:
    name = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationError(
            f"Instance name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
            details={"field": "name"},
        )
    return name


@dataclass
class Instance:
    """
    Instance aggregate.

    `state`, `phone_number`, `status_failures` and `last_error` are written
    only by the instance state machine. `name` and `owner_id` never change.
    """
    owner_id: UUID
    name: str
    pairing_token: Optional[str] = None
    integration: Integration = Integration.WHATSAPP_BAILEYS
    settings: InstanceSettings = field(default_factory=InstanceSettings)
    state: InstanceState = InstanceState.DISCONNECTED
    phone_number: Optional[str] = None
    status_failures: int = 0
    last_error: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    state_changed_at: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.name = validate_instance_name(self.name)

    def is_connected(self) -> bool:
        return self.state == InstanceState.CONNECTED

    def connecting_for(self, now: Optional[datetime] = None) -> float:
        """Seconds spent in CONNECTING, 0 for any other state."""
        if self.state != InstanceState.CONNECTING:
            return 0.0
        return ((now or utcnow()) - self.state_changed_at).total_seconds()
