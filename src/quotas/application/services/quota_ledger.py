"""
Quota Ledger
Atomic check-and-reserve admission against per-user ceilings
"""
from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime
from typing import AsyncContextManager, AsyncIterator, Callable, Dict, Optional
from uuid import UUID

from src.config import Settings
from src.identity.domain.entities.user import UserLimits
from src.identity.domain.exceptions import UserNotFoundError
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol
from src.quotas.domain.services.quota_policy import QuotaDecision, QuotaKind, evaluate
from src.shared.exceptions import ResourceBusyError
from src.shared.infrastructure.locks import (
    IKeyedLocks,
    InMemoryPendingReservations,
    IPendingReservations,
    LockUnavailableError,
)
from src.shared.logging import get_logger
from src.shared.timeutils import start_of_day, utcnow

logger = get_logger(__name__)


class Reservation:
    """
    One admitted unit of quota, held until the caller records it.

    The caller writes the record that makes the usage durable inside
    `settle()`; the reservation is released in the same critical section,
    so a concurrent admission counts the unit exactly once.
    """

    def __init__(self, ledger: "QuotaLedger", key: str, decision: QuotaDecision, token: Optional[str]) -> None:
        self._ledger = ledger
        self.key = key
        self.decision = decision
        self._token = token

    @property
    def admitted(self) -> bool:
        return self.decision.admitted

    @asynccontextmanager
    async def settle(self) -> AsyncIterator[None]:
        # Sections only span store round-trips, so queue without a bound.
        async with self._ledger._section(self.key, wait=None):
            try:
                yield
            finally:
                await self.release()

    async def release(self) -> None:
        token, self._token = self._token, None
        if token is not None:
            await self._ledger._pending.discard(self.key, token)


class QuotaLedger:
    """
    Admission control for quota-bounded actions.

    Usage is never stored as a counter: it is recounted from the record
    store (live instances, today's message records) plus the reservations
    still in flight, inside a short per-user critical section. The section
    is released before the caller talks to the gateway.

    Example:
        async with ledger.message_admission(user_id) as reservation:
            if not reservation.admitted:
                raise QuotaExceededError(...)
            message_id = await gateway.send_message(...)
            async with reservation.settle():
                ...write the message record...
    """

    def __init__(
        self,
        uow_factory: Callable[[], ControlPlaneUnitOfWorkProtocol],
        locks: IKeyedLocks,
        settings: Settings,
        *,
        reservations: Optional[IPendingReservations] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._locks = locks
        self._settings = settings
        self._pending = reservations or InMemoryPendingReservations()
        self._clock = clock

    # ------------------------------------------------------------------
    # Check-only forms
    # ------------------------------------------------------------------

    async def try_admit_instance(self, user_id: UUID) -> QuotaDecision:
        async with self.instance_admission(user_id) as reservation:
            return reservation.decision

    async def try_admit_message(self, user_id: UUID) -> QuotaDecision:
        async with self.message_admission(user_id) as reservation:
            return reservation.decision

    # ------------------------------------------------------------------
    # Reserving forms
    # ------------------------------------------------------------------

    def instance_admission(self, user_id: UUID) -> AsyncContextManager[Reservation]:
        return self._admission(user_id, QuotaKind.INSTANCES, f"quota:instances:{user_id}")

    def message_admission(self, user_id: UUID) -> AsyncContextManager[Reservation]:
        return self._admission(user_id, QuotaKind.MESSAGES_PER_DAY, f"quota:messages:{user_id}")

    @asynccontextmanager
    async def _admission(self, user_id: UUID, kind: QuotaKind, key: str) -> AsyncIterator[Reservation]:
        async with self._section(key, wait=self._settings.ADMISSION_WAIT_SECONDS):
            decision = await self._evaluate(user_id, kind, pending=await self._pending.count(key))
            token = await self._pending.add(key) if decision.admitted else None
        reservation = Reservation(self, key, decision, token)
        try:
            yield reservation
        finally:
            await reservation.release()

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    async def limits_for(self, user_id: UUID) -> UserLimits:
        """Explicit limits record, or role-dependent defaults."""
        async with self._uow_factory() as uow:
            return await self._limits_in(uow, user_id)

    async def usage(self, user_id: UUID) -> Dict[str, QuotaDecision]:
        """Current usage vs. ceilings, without taking the admission sections."""
        async with self._uow_factory() as uow:
            limits = await self._limits_in(uow, user_id)
            instances = await uow.instances.count_by_owner(user_id)
            messages = await uow.messages.count_since(user_id, self._day_start())
        return {
            QuotaKind.INSTANCES.value: evaluate(QuotaKind.INSTANCES, instances, limits.max_instances),
            QuotaKind.MESSAGES_PER_DAY.value: evaluate(
                QuotaKind.MESSAGES_PER_DAY, messages, limits.max_messages_per_day
            ),
        }

    async def _limits_in(self, uow: ControlPlaneUnitOfWorkProtocol, user_id: UUID) -> UserLimits:
        limits = await uow.limits.get(user_id)
        if limits is not None:
            return limits
        user = await uow.users.get(user_id)
        if user is None:
            raise UserNotFoundError("User not found", details={"user_id": str(user_id)})
        return UserLimits.defaults_for(user_id, user.role, self._settings)

    async def _evaluate(self, user_id: UUID, kind: QuotaKind, *, pending: int = 0) -> QuotaDecision:
        async with self._uow_factory() as uow:
            limits = await self._limits_in(uow, user_id)
            if kind == QuotaKind.INSTANCES:
                current = await uow.instances.count_by_owner(user_id)
                limit = limits.max_instances
            else:
                current = await uow.messages.count_since(user_id, self._day_start())
                limit = limits.max_messages_per_day

        current += pending
        decision = evaluate(kind, current, limit)
        if not decision.admitted:
            logger.info(
                "quota_denied",
                user_id=str(user_id),
                kind=kind.value,
                current=current,
                limit=limit,
                pending=pending,
            )
        return decision

    def _day_start(self) -> datetime:
        return start_of_day(self._settings.TIMEZONE, self._clock())

    @asynccontextmanager
    async def _section(self, key: str, *, wait: Optional[float]) -> AsyncIterator[None]:
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(self._locks.hold(key, wait=wait))
        except LockUnavailableError:
            logger.warning("admission_section_timeout", key=key, wait=wait)
            raise ResourceBusyError(
                "Too many concurrent requests for this account, try again",
                details={"key": key},
            ) from None
        async with stack:
            yield
