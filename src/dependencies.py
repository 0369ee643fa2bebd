# src/dependencies.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from src.factories import Services
from src.identity.application.services.user_service import UserService
from src.instances.application.services.instance_orchestrator import InstanceOrchestrator
from src.quotas.application.services.quota_ledger import QuotaLedger
from src.shared.error_codes import ERROR_CODES
from src.shared.exceptions import ForbiddenError, UnauthorizedError
from src.shared.roles import Actor, Role, has_min_role
from src.shared.security import actor_from_claims


# --- Services built in the app lifespan ---
def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Application services are not initialized")
    return services


def get_orchestrator(services: Services = Depends(get_services)) -> InstanceOrchestrator:
    return services.orchestrator


def get_user_service(services: Services = Depends(get_services)) -> UserService:
    return services.user_service


def get_quota_ledger(services: Services = Depends(get_services)) -> QuotaLedger:
    return services.quota_ledger


# --- Current actor & role guard ---
async def get_current_actor(request: Request) -> Actor:
    """Actor from the claims parsed by JwtContextMiddleware; 401 when absent."""
    claims = getattr(request.state, "user_claims", None)
    if not claims:
        data = ERROR_CODES["unauthorized"]
        raise UnauthorizedError(data["message"])
    return actor_from_claims(claims)


def require_role(required_role: Role):
    """
    FastAPI dependency generator that enforces the current actor
    has at least the given role.

    Usage:
        @router.post("", dependencies=[Depends(require_role(Role.ADMIN))])
    """
    def _enforce(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not has_min_role(actor.role, required_role):
            data = ERROR_CODES["forbidden"]
            raise ForbiddenError(data["message"])
        return actor

    return _enforce


# --- JWT parsing middleware helper (used in main.py) ---
def extract_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.lower().startswith("bearer "):
        return None
    return auth.split(" ", 1)[1].strip()
