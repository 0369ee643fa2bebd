# src/gateway/domain/exceptions.py
"""
Gateway failure taxonomy.

Callers see exactly three kinds of failure; only Unreachable is safe to retry.
"""
from typing import Any, Dict, Optional

from fastapi import status

from src.shared.exceptions import DomainError


class GatewayError(DomainError):
    """Base exception for messaging gateway failures."""
    code = "gateway_error"
    status_code = status.HTTP_502_BAD_GATEWAY
    retryable: bool = False


class GatewayUnreachableError(GatewayError):
    """Network error, timeout or gateway-side 5xx."""
    code = "gateway_unreachable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class GatewayRejectedError(GatewayError):
    """The gateway refused the request with a 4xx business error."""
    code = "gateway_rejected"

    def __init__(self, gateway_message: str, *, gateway_status: int, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            gateway_message,
            details={"gateway_status": gateway_status, **(details or {})},
        )
        self.gateway_message = gateway_message
        self.gateway_status = gateway_status


class GatewayUnexpectedError(GatewayError):
    """The gateway answered with a malformed or unexpected payload."""
    code = "gateway_unexpected"
