"""
Structured logging using structlog with:
- JSON/console switchable format
- Correlation ID + request context
- Phone number redaction outside dev (recipients show up in message logs)
- Safe defaults for Uvicorn/SQLAlchemy/httpx
"""

from __future__ import annotations

import datetime
import logging
import logging.config
import re
import sys
import uuid
from typing import Any, Dict, Iterable, Optional

import structlog
from pythonjsonlogger import jsonlogger

from src.config import Settings, get_settings

# ---------------------------------------------------------------------
# PII redaction
# ---------------------------------------------------------------------


class PhoneRedactionProcessor:
    """
    Structlog processor to mask MSISDNs inside event_dict (recursively).
    Keeps the first two and last four digits.
    """
    P_MSISDN = re.compile(r"\+?[1-9]\d{7,14}")

    def __call__(self, logger, method_name, event_dict):
        return self._redact(event_dict)

    def _redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._redact(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._redact(v) for v in value]
        if isinstance(value, str):
            return self.P_MSISDN.sub(self._mask, value)
        return value

    @staticmethod
    def _mask(m: re.Match) -> str:
        g = m.group(0)
        return f"{g[:2]}****{g[-4:]}"


# ---------------------------------------------------------------------
# Context processors
# ---------------------------------------------------------------------


class CorrelationIdProcessor:
    """Attach correlation_id from structlog contextvars into each event."""
    def __call__(self, logger, method_name, event_dict):
        ctx = structlog.contextvars.get_contextvars()
        cid = ctx.get("correlation_id") or ctx.get("request_id")
        if cid:
            event_dict["correlation_id"] = cid
        return event_dict


def add_timestamp(logger, method_name, event_dict):
    # UTC ISO8601 Z
    event_dict["timestamp"] = datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
    return event_dict


def _passthrough(logger, method_name, event_dict):
    return event_dict


# ---------------------------------------------------------------------
# Public helpers to use from API/worker code
# ---------------------------------------------------------------------


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Generate/bind a correlation_id if not provided; returns the id."""
    cid = correlation_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(correlation_id=cid)
    return cid


def bind_request_context(
    *,
    request_id: Optional[str] = None,
    path: Optional[str] = None,
    method: Optional[str] = None,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    extras: Optional[Dict[str, Any]] = None,
) -> None:
    """Bind standard request context fields (call in middleware/route handlers)."""
    payload = {
        k: v
        for k, v in dict(
            request_id=request_id,
            path=path,
            method=method,
            user_id=user_id,
            role=role,
        ).items()
        if v is not None
    }
    if extras:
        payload.update(extras)
    if payload:
        structlog.contextvars.bind_contextvars(**payload)


def clear_request_context() -> None:
    """Clear all bound contextvars (call at end of request/worker job)."""
    structlog.contextvars.clear_contextvars()


# ---------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------

def _ensure_log_format(settings: Settings) -> str:
    """
    Determine output format:
      - LOG_FORMAT when set ("json"|"console").
      - Else "console" for dev, "json" for staging/prod.
    """
    if settings.LOG_FORMAT in ("json", "console"):
        return settings.LOG_FORMAT
    return "console" if settings.is_dev else "json"


def _level_name_to_int(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Idempotent structured logging configuration."""
    settings = settings or get_settings()
    log_format = _ensure_log_format(settings)
    is_prod_like = settings.is_prod or settings.is_staging

    # Python stdlib logging config
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            },
            "console": {
                "format": "%(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if log_format == "json" else "console",
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": _level_name_to_int(settings.LOG_LEVEL),
            "handlers": ["console"],
        },
        "loggers": {
            # Quiet noisy libs, but keep errors
            "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "sqlalchemy.engine": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
            "httpx": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
    }
    logging.config.dictConfig(logging_config)

    # structlog processors pipeline
    processors: Iterable[Any] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        CorrelationIdProcessor(),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        # Redact only outside of dev to help debugging locally
        (PhoneRedactionProcessor() if is_prod_like else _passthrough),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        # Renderer
        (structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        # uncached under test so log capture sees every logger
        cache_logger_on_first_use=not settings.TESTING,
    )

    # Clear any inherited context
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
