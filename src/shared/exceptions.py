from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.shared.error_codes import ERROR_CODES

logger = structlog.get_logger(__name__)


# ───────────────────────── Base & Domain Exceptions ─────────────────────────
class DomainError(Exception):
    """Base class for domain-level errors. Services should raise these, never HTTPException."""
    code: str = "domain_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    # Expected outcomes (busy, quota) are part of normal traffic, not faults.
    expected: bool = False
    message: str
    details: Optional[Dict[str, Any]]

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.__class__.__name__
        self.details = details


class ValidationError(DomainError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class UnauthorizedError(DomainError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(DomainError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    # generic; set a specific code via constructor if needed (e.g., "instance_not_found")
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class ResourceBusyError(ConflictError):
    code = "resource_busy"
    expected = True


class QuotaExceededError(DomainError):
    code = "quota_exceeded"
    status_code = status.HTTP_403_FORBIDDEN
    expected = True

    def __init__(self, kind: str, *, limit: int, current: int) -> None:
        super().__init__(
            f"{kind} limit reached ({limit})",
            details={"kind": kind, "limit": limit, "current": current},
        )
        self.kind = kind
        self.limit = limit
        self.current = current


class StorageFailureError(DomainError):
    code = "storage_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InternalServerError(DomainError):
    code = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ───────────────────────────── Helpers ──────────────────────────────────────

def _problem(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]],
    correlation_id: Optional[str],
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": code, "message": message}
    if details:
        body["details"] = details
    if correlation_id:
        body["correlation_id"] = correlation_id
    return body


def _extract_correlation_id(req: Request) -> Optional[str]:
    return getattr(getattr(req, "state", None), "request_id", None)


def _http_for(code: str) -> int:
    return int(ERROR_CODES.get(code, {}).get("http", status.HTTP_500_INTERNAL_SERVER_ERROR))


def _msg_for(code: str) -> str:
    return str(ERROR_CODES.get(code, {}).get("message", code))

# ─────────────────────────── Registration ───────────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def handle_app_error(req: Request, exc: DomainError):
        if exc.expected:
            logger.info("Request refused", code=exc.code, path=req.url.path, details=exc.details)
        elif exc.status_code >= 500:
            logger.error("Request failed", code=exc.code, path=req.url.path, error=exc.message)
        else:
            logger.warning("Request rejected", code=exc.code, path=req.url.path, error=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_problem(exc.code, exc.message, exc.details, _extract_correlation_id(req)),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(req: Request, exc: RequestValidationError):
        code = "validation_error"
        return JSONResponse(
            status_code=_http_for(code),
            content=_problem(code, _msg_for(code), {"errors": jsonable_encoder(exc.errors())}, _extract_correlation_id(req)),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(req: Request, exc: HTTPException):
        # map HTTP status → first matching ERROR_CODES entry
        reverse_map = {}
        for key, value in ERROR_CODES.items():
            reverse_map.setdefault(value["http"], key)
        code = reverse_map.get(exc.status_code, "internal_error")
        detail = getattr(exc, "detail", None)
        details = detail if isinstance(detail, dict) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_problem(code, str(detail) if isinstance(detail, str) else _msg_for(code), details, _extract_correlation_id(req)),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(req: Request, exc: Exception):
        code = "internal_error"
        logger.exception("Unhandled error", path=req.url.path)
        return JSONResponse(
            status_code=_http_for(code),
            content=_problem(code, _msg_for(code), {"type": exc.__class__.__name__}, _extract_correlation_id(req)),
        )
