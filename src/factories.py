# src/factories.py
"""
Composition root: builds the store, gateway client, locks and services from
settings. Everything is constructed explicitly and injected; tests swap in
their own collaborators through `build_services`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import Settings
from src.gateway.domain.protocols import InstanceGateway
from src.gateway.infrastructure.evolution_gateway import EvolutionGateway
from src.identity.application.services.user_service import UserService
from src.instances.application.services.instance_orchestrator import InstanceOrchestrator
from src.instances.application.services.instance_state_machine import InstanceStateMachine
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol
from src.instances.infrastructure.unit_of_work import ControlPlaneUnitOfWork
from src.quotas.application.services.quota_ledger import QuotaLedger
from src.shared.infrastructure.locks import (
    IKeyedLocks,
    InMemoryKeyedLocks,
    InMemoryPendingReservations,
    IPendingReservations,
    RedisKeyedLocks,
    RedisPendingReservations,
)
from src.shared.logging import get_logger
from src.shared.shield import ShieldedRunner

logger = get_logger(__name__)

UowFactory = Callable[[], ControlPlaneUnitOfWorkProtocol]


def make_uow_factory(session_factory: async_sessionmaker[AsyncSession]) -> UowFactory:
    """Returns a factory producing a fresh Unit of Work per operation."""

    def _uow_factory() -> ControlPlaneUnitOfWork:
        return ControlPlaneUnitOfWork(session_factory)

    return _uow_factory


async def make_coordination(settings: Settings) -> Tuple[IKeyedLocks, IPendingReservations]:
    """
    Keyed locks and pending reservations for LOCK_BACKEND: in-process
    (default) or redis. Both share one redis client.
    """
    backend = settings.LOCK_BACKEND.lower()
    if backend == "memory":
        return InMemoryKeyedLocks(), InMemoryPendingReservations()
    if backend == "redis":
        if not settings.REDIS_URL:
            raise RuntimeError("LOCK_BACKEND=redis requires REDIS_URL")
        # NOTE: from_url is sync; do NOT await it
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            health_check_interval=30,
            socket_connect_timeout=5.0,
            socket_timeout=5.0,
        )
        await client.ping()
        logger.info("Redis lock backend connected")
        namespace = f"{settings.PROJECT_NAME}:{settings.ENVIRONMENT}"
        locks = RedisKeyedLocks(client, namespace=f"{namespace}:lock", ttl_seconds=settings.LOCK_TTL_SECONDS)
        reservations = RedisPendingReservations(
            client, namespace=f"{namespace}:pending", ttl_seconds=settings.LOCK_TTL_SECONDS
        )
        return locks, reservations
    raise RuntimeError(f"Unknown LOCK_BACKEND '{settings.LOCK_BACKEND}'")


@dataclass
class Services:
    settings: Settings
    gateway: InstanceGateway
    locks: IKeyedLocks
    reservations: IPendingReservations
    uow_factory: UowFactory
    state_machine: InstanceStateMachine
    quota_ledger: QuotaLedger
    orchestrator: InstanceOrchestrator
    user_service: UserService
    runner: ShieldedRunner = field(default_factory=ShieldedRunner)

    async def aclose(self) -> None:
        """Let shielded units finish, then release clients."""
        await self.runner.drain()
        close = getattr(self.gateway, "close", None)
        if close is not None:
            await close()
        close = getattr(self.locks, "close", None)
        if close is not None:
            await close()


def build_services(
    settings: Settings,
    *,
    uow_factory: UowFactory,
    gateway: InstanceGateway,
    locks: Optional[IKeyedLocks] = None,
    reservations: Optional[IPendingReservations] = None,
) -> Services:
    locks = locks or InMemoryKeyedLocks()
    reservations = reservations or InMemoryPendingReservations()
    runner = ShieldedRunner()
    state_machine = InstanceStateMachine(uow_factory, gateway, locks, settings, runner=runner)
    quota_ledger = QuotaLedger(uow_factory, locks, settings, reservations=reservations)
    orchestrator = InstanceOrchestrator(
        uow_factory, state_machine, quota_ledger, gateway, settings, runner=runner
    )
    return Services(
        settings=settings,
        gateway=gateway,
        locks=locks,
        reservations=reservations,
        uow_factory=uow_factory,
        state_machine=state_machine,
        quota_ledger=quota_ledger,
        orchestrator=orchestrator,
        user_service=UserService(uow_factory, state_machine, settings),
        runner=runner,
    )


async def build_services_from_settings(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> Services:
    locks, reservations = await make_coordination(settings)
    return build_services(
        settings,
        uow_factory=make_uow_factory(session_factory),
        gateway=EvolutionGateway.from_settings(settings),
        locks=locks,
        reservations=reservations,
    )
