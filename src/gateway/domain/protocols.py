# src/gateway/domain/protocols.py
"""Gateway contract consumed by the instance lifecycle core."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Protocol


class MessageKind(str, Enum):
    TEXT = "TEXT"
    MEDIA = "MEDIA"


@dataclass(frozen=True, slots=True)
class CreatedInstance:
    pairing_token: str
    qr_code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class GatewayStatus:
    """Raw connection state as reported by the gateway (not yet mapped)."""
    state: str
    qr_code: Optional[str] = None
    phone_number: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ConnectResult:
    qr_code: Optional[str] = None
    pairing_code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class NumberCheck:
    number: str
    exists: bool
    jid: Optional[str] = None


class InstanceGateway(Protocol):
    """
    One coroutine per gateway capability.

    Implementations raise GatewayUnreachableError, GatewayRejectedError or
    GatewayUnexpectedError and never retry. `token` is the instance's
    pairing token.
    """

    async def create_instance(
        self, name: str, integration: str, settings: Mapping[str, Any]
    ) -> CreatedInstance:
        ...

    async def get_status(self, name: str, token: Optional[str]) -> GatewayStatus:
        ...

    async def connect(self, name: str, token: Optional[str]) -> ConnectResult:
        ...

    async def disconnect(self, name: str, token: Optional[str]) -> None:
        ...

    async def restart(self, name: str, token: Optional[str]) -> None:
        ...

    async def delete(self, name: str, token: Optional[str]) -> None:
        """Deleting an instance the gateway no longer knows is not an error."""
        ...

    async def send_message(
        self,
        name: str,
        token: Optional[str],
        *,
        to: str,
        body: str,
        kind: MessageKind = MessageKind.TEXT,
        media_url: Optional[str] = None,
    ) -> str:
        """Returns the gateway message id."""
        ...

    async def check_number(self, name: str, token: Optional[str], number: str) -> NumberCheck:
        ...
