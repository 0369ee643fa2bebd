"""
Evolution API Gateway Implementation
Typed wrapper over the gateway's instance and message endpoints
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx

from src.config import Settings
from src.gateway.domain.exceptions import (
    GatewayRejectedError,
    GatewayUnexpectedError,
    GatewayUnreachableError,
)
from src.gateway.domain.protocols import (
    ConnectResult,
    CreatedInstance,
    GatewayStatus,
    MessageKind,
    NumberCheck,
)
from src.shared.logging import get_logger

logger = get_logger(__name__)


class EvolutionGateway:
    """
    Evolution API gateway client.

    - Explicitly constructed with its own httpx.AsyncClient (base URL, timeout)
    - Static API key header; instance-scoped calls authenticate with the
      instance's pairing token when one is known
    - Transport errors are mapped to the gateway failure taxonomy
    - No retries: retry policy belongs to the caller
    """

    def __init__(self, client: httpx.AsyncClient, *, api_key: str) -> None:
        self.client = client
        self._api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "EvolutionGateway":
        client = httpx.AsyncClient(
            base_url=settings.EVOLUTION_API_URL.rstrip("/"),
            timeout=httpx.Timeout(settings.GATEWAY_TIMEOUT_SECONDS),
            headers={"Content-Type": "application/json"},
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        )
        return cls(client, api_key=settings.EVOLUTION_API_KEY)

    # ------------------------------------------------------------------
    # Instance operations
    # ------------------------------------------------------------------

    async def create_instance(
        self, name: str, integration: str, settings: Mapping[str, Any]
    ) -> CreatedInstance:
        payload: Dict[str, Any] = {
            "instanceName": name,
            "integration": integration,
            "qrcode": True,
            **settings,
        }
        data = self._expect_dict(await self._request("POST", "/instance/create", json=payload), "instance/create")

        token = data.get("hash")
        if isinstance(token, dict):
            token = token.get("apikey")
        if not isinstance(token, str) or not token:
            raise self._unexpected("instance/create", "response has no instance hash")

        return CreatedInstance(pairing_token=token, qr_code=self._qr_from(data.get("qrcode")))

    async def get_status(self, name: str, token: Optional[str]) -> GatewayStatus:
        data = self._expect_dict(
            await self._request("GET", f"/instance/connectionState/{name}", token=token),
            "instance/connectionState",
        )
        instance = data.get("instance")
        if not isinstance(instance, dict) or not isinstance(instance.get("state"), str):
            raise self._unexpected("instance/connectionState", "response has no instance.state")

        owner = instance.get("ownerJid") or instance.get("owner")
        return GatewayStatus(
            state=instance["state"],
            qr_code=self._qr_from(instance.get("qrcode") or data.get("qrcode")),
            phone_number=owner.split("@", 1)[0] if isinstance(owner, str) and owner else None,
        )

    async def connect(self, name: str, token: Optional[str]) -> ConnectResult:
        data = await self._request("POST", f"/instance/connect/{name}", token=token)
        if data is None:
            return ConnectResult()
        data = self._expect_dict(data, "instance/connect")
        return ConnectResult(
            qr_code=data.get("base64") or self._qr_from(data.get("qrcode")),
            pairing_code=data.get("pairingCode"),
        )

    async def disconnect(self, name: str, token: Optional[str]) -> None:
        await self._request("POST", f"/instance/logout/{name}", token=token)

    async def restart(self, name: str, token: Optional[str]) -> None:
        await self._request("POST", f"/instance/restart/{name}", token=token)

    async def delete(self, name: str, token: Optional[str]) -> None:
        await self._request("DELETE", f"/instance/delete/{name}", token=token, allow_not_found=True)

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

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
        if kind == MessageKind.MEDIA:
            if not media_url:
                raise ValueError("media messages require a media_url")
            path = f"/message/sendMedia/{name}"
            payload: Dict[str, Any] = {"number": to, "mediatype": "image", "media": media_url, "caption": body}
        else:
            path = f"/message/sendText/{name}"
            payload = {"number": to, "text": body}

        data = self._expect_dict(await self._request("POST", path, token=token, json=payload), "message/send")
        key = data.get("key")
        if not isinstance(key, dict) or not key.get("id"):
            raise self._unexpected("message/send", "response has no key.id")
        return str(key["id"])

    async def check_number(self, name: str, token: Optional[str], number: str) -> NumberCheck:
        data = await self._request(
            "POST", f"/chat/whatsappNumbers/{name}", token=token, json={"numbers": [number]}
        )
        if not isinstance(data, list):
            raise self._unexpected("chat/whatsappNumbers", "response is not a list")

        digits = "".join(ch for ch in number if ch.isdigit())
        match = None
        for item in data:
            if not isinstance(item, dict):
                continue
            jid = str(item.get("jid") or "")
            if item.get("number") == number or (digits and jid.startswith(digits)):
                match = item
                break
        if match is None and len(data) == 1 and isinstance(data[0], dict):
            match = data[0]
        if match is None:
            return NumberCheck(number=number, exists=False)
        return NumberCheck(number=number, exists=bool(match.get("exists")), jid=match.get("jid") or None)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        json: Optional[Any] = None,
        allow_not_found: bool = False,
    ) -> Any:
        headers = {"apikey": token or self._api_key}
        try:
            response = await self.client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Gateway timeout", method=method, path=path)
            raise GatewayUnreachableError(f"Gateway timed out on {method} {path}") from e
        except httpx.RequestError as e:
            logger.warning("Gateway unreachable", method=method, path=path, error=str(e))
            raise GatewayUnreachableError(f"Gateway unreachable on {method} {path}: {e.__class__.__name__}") from e

        if allow_not_found and response.status_code == 404:
            logger.info("Gateway resource already absent", method=method, path=path)
            return None
        if response.status_code >= 500:
            logger.warning("Gateway server error", method=method, path=path, status_code=response.status_code)
            raise GatewayUnreachableError(
                f"Gateway returned {response.status_code} on {method} {path}",
                details={"gateway_status": response.status_code},
            )
        if response.status_code >= 400:
            message = self._error_message(response)
            logger.info("Gateway rejected request", method=method, path=path, status_code=response.status_code, gateway_message=message)
            raise GatewayRejectedError(message, gateway_status=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise self._unexpected(path, "response is not JSON") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the human message out of the gateway's error envelope."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            inner = data.get("response")
            message = inner.get("message") if isinstance(inner, dict) else None
            message = message or data.get("message") or data.get("error")
            if isinstance(message, list):
                return "; ".join(str(m) for m in message)
            if message:
                return str(message)
        return f"HTTP {response.status_code}"

    @staticmethod
    def _qr_from(value: Any) -> Optional[str]:
        if isinstance(value, dict):
            return value.get("base64")
        return None

    def _expect_dict(self, data: Any, operation: str) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise self._unexpected(operation, "response is not an object")
        return data

    @staticmethod
    def _unexpected(operation: str, reason: str) -> GatewayUnexpectedError:
        logger.error("Unexpected gateway response", operation=operation, reason=reason)
        return GatewayUnexpectedError(f"Unexpected gateway response for {operation}: {reason}")

    async def close(self) -> None:
        """Close the HTTP client connection pool."""
        await self.client.aclose()
        logger.info("Gateway client closed")
