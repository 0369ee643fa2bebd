"""
Instance Orchestrator
Facade used by request handlers: ownership -> admission -> guarded gateway call -> persistence
"""
from __future__ import annotations

from typing import Callable, Optional
from uuid import UUID

from src.config import Settings
from src.gateway.domain.exceptions import GatewayError
from src.gateway.domain.protocols import InstanceGateway, MessageKind, NumberCheck
from src.instances.application.dto.instance_dto import (
    ConnectView,
    CreatedInstanceView,
    InstancePage,
    StatusView,
)
from src.instances.application.services.instance_state_machine import InstanceStateMachine
from src.instances.domain.entities.instance import (
    Instance,
    InstanceSettings,
    InstanceState,
    Integration,
    validate_instance_name,
)
from src.instances.domain.entities.message_record import MessageRecord, MessageStatus
from src.instances.domain.exceptions import InstanceNotFoundError, InvalidTransitionError
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol
from src.quotas.application.services.quota_ledger import QuotaLedger, Reservation
from src.quotas.domain.services.quota_policy import QuotaDecision
from src.shared.exceptions import QuotaExceededError, ValidationError
from src.shared.logging import get_logger
from src.shared.roles import Actor
from src.shared.shield import ShieldedRunner

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


class InstanceOrchestrator:
    """
    Lifecycle operations on behalf of an actor.

    Instances not owned by a non-privileged actor are reported as not found.
    Failures propagate with their typed kind; nothing is retried here.
    """

    def __init__(
        self,
        uow_factory: Callable[[], ControlPlaneUnitOfWorkProtocol],
        state_machine: InstanceStateMachine,
        quota_ledger: QuotaLedger,
        gateway: InstanceGateway,
        settings: Settings,
        *,
        runner: Optional[ShieldedRunner] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._sm = state_machine
        self._quotas = quota_ledger
        self._gateway = gateway
        self._settings = settings
        self._runner = runner or ShieldedRunner()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_instances(
        self, actor: Actor, *, page: int = 1, limit: int = 10, mine_only: bool = False
    ) -> InstancePage:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        owner_id = None if actor.is_privileged and not mine_only else actor.user_id
        async with self._uow_factory() as uow:
            items = await uow.instances.list_by_owner(owner_id, offset=(page - 1) * limit, limit=limit)
            total = await uow.instances.count_by_owner(owner_id)
        return InstancePage(items=list(items), total=total, page=page, limit=limit)

    async def get_instance(self, actor: Actor, instance_id: UUID) -> Instance:
        return await self._owned(actor, instance_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_instance(
        self,
        actor: Actor,
        *,
        name: str,
        integration: Integration = Integration.WHATSAPP_BAILEYS,
        settings: Optional[InstanceSettings] = None,
    ) -> CreatedInstanceView:
        name = validate_instance_name(name)

        # the reservation lives until the instance is persisted, even if the
        # caller is cancelled
        async def unit() -> CreatedInstanceView:
            async with self._quotas.instance_admission(actor.user_id) as reservation:
                self._require_admitted(reservation.decision)
                instance, qr_code = await self._sm.create(
                    actor.user_id, name, integration, settings, settle=reservation.settle
                )
            return CreatedInstanceView(instance=instance, qr_code=qr_code)

        return await self._runner.run(unit)

    async def connect(self, actor: Actor, instance_id: UUID) -> ConnectView:
        await self._owned(actor, instance_id)
        instance, result = await self._sm.connect(instance_id)
        return ConnectView(instance=instance, qr_code=result.qr_code, pairing_code=result.pairing_code)

    async def disconnect(self, actor: Actor, instance_id: UUID) -> Instance:
        await self._owned(actor, instance_id)
        return await self._sm.disconnect(instance_id)

    async def restart(self, actor: Actor, instance_id: UUID) -> Instance:
        await self._owned(actor, instance_id)
        return await self._sm.restart(instance_id)

    async def delete(self, actor: Actor, instance_id: UUID) -> None:
        await self._owned(actor, instance_id)
        await self._sm.delete(instance_id)

    async def update_settings(self, actor: Actor, instance_id: UUID, settings: InstanceSettings) -> Instance:
        await self._owned(actor, instance_id)
        return await self._sm.update_settings(instance_id, settings)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self, actor: Actor, instance_id: UUID) -> StatusView:
        await self._owned(actor, instance_id)
        return await self.reconcile(instance_id)

    async def get_qr_code(self, actor: Actor, instance_id: UUID) -> StatusView:
        """Current gateway state and pairing QR, for the test console."""
        return await self.get_status(actor, instance_id)

    async def reconcile(self, instance_id: UUID) -> StatusView:
        """
        System-level status refresh: reconcile with the gateway, then apply
        the Connecting-timeout policy (CONNECTING_TIMEOUT_SECONDS, 0 disables).
        """
        try:
            instance, report = await self._sm.refresh_status(instance_id)
        except GatewayError:
            await self._expire_if_stale(instance_id)
            raise
        instance = await self._expire_if_stale(instance_id, instance)
        return StatusView(instance=instance, gateway_state=report.state, qr_code=report.qr_code)

    async def _expire_if_stale(self, instance_id: UUID, instance: Optional[Instance] = None) -> Optional[Instance]:
        timeout = self._settings.CONNECTING_TIMEOUT_SECONDS
        if timeout <= 0:
            return instance
        if instance is None:
            async with self._uow_factory() as uow:
                instance = await uow.instances.get(instance_id)
            if instance is None:
                return None
        if instance.state == InstanceState.CONNECTING and instance.connecting_for() >= timeout:
            logger.info("instance_connecting_timeout", instance_id=str(instance_id), timeout=timeout)
            return await self._sm.expire(instance_id, older_than=timeout)
        return instance

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def send_message(
        self,
        actor: Actor,
        instance_id: UUID,
        *,
        to: str,
        body: str,
        kind: MessageKind = MessageKind.TEXT,
        media_url: Optional[str] = None,
    ) -> MessageRecord:
        """
        Send through a CONNECTED instance.

        Exactly one MessageRecord is written per gateway attempt (SENT or
        FAILED). The owner's admission reservation is settled by that write,
        so the daily counter never misses an in-flight send. Only the
        admission itself is serialized per user; the gateway call is not.
        Quota denial and wrong state write nothing.
        """
        if kind == MessageKind.MEDIA and not media_url:
            raise ValidationError("media_url is required for media messages", details={"field": "media_url"})

        instance = await self._owned(actor, instance_id)
        self._require_connected(instance, "send_message")

        async def unit() -> MessageRecord:
            async with self._quotas.message_admission(instance.owner_id) as reservation:
                self._require_admitted(reservation.decision)
                # state may have moved while waiting for admission
                current = await self._load(instance_id)
                self._require_connected(current, "send_message")
                return await self._send_and_record(
                    current, reservation, to=to, body=body, kind=kind, media_url=media_url
                )

        return await self._runner.run(unit)

    async def _send_and_record(
        self,
        instance: Instance,
        reservation: Reservation,
        *,
        to: str,
        body: str,
        kind: MessageKind,
        media_url: Optional[str],
    ) -> MessageRecord:
        base = dict(
            instance_id=instance.id,
            user_id=instance.owner_id,
            to=to,
            sender=instance.phone_number or "unknown",
            body=body,
            type=kind,
            media_url=media_url,
        )
        try:
            message_id = await self._gateway.send_message(
                instance.name, instance.pairing_token, to=to, body=body, kind=kind, media_url=media_url
            )
        except GatewayError as e:
            record = MessageRecord(status=MessageStatus.FAILED, error=e.message, **base)
            await self._append(record, reservation)
            logger.warning(
                "message_send_failed",
                instance_id=str(instance.id),
                user_id=str(instance.owner_id),
                error_code=e.code,
            )
            raise

        record = MessageRecord(status=MessageStatus.SENT, gateway_message_id=message_id, **base)
        await self._append(record, reservation)
        logger.info("message_sent", instance_id=str(instance.id), user_id=str(instance.owner_id), kind=kind.value)
        return record

    async def _append(self, record: MessageRecord, reservation: Reservation) -> None:
        async with reservation.settle():
            async with self._uow_factory() as uow:
                await uow.messages.add(record)
                await uow.commit()

    async def check_number(self, actor: Actor, instance_id: UUID, number: str) -> NumberCheck:
        instance = await self._owned(actor, instance_id)
        self._require_connected(instance, "check_number")
        return await self._gateway.check_number(instance.name, instance.pairing_token, number)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, instance_id: UUID) -> Instance:
        async with self._uow_factory() as uow:
            instance = await uow.instances.get(instance_id)
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        return instance

    async def _owned(self, actor: Actor, instance_id: UUID) -> Instance:
        instance = await self._load(instance_id)
        if not actor.can_access(instance.owner_id):
            raise InstanceNotFoundError(instance_id)
        return instance

    @staticmethod
    def _require_connected(instance: Instance, operation: str) -> None:
        if instance.state != InstanceState.CONNECTED:
            raise InvalidTransitionError(instance.state.value, operation)

    @staticmethod
    def _require_admitted(decision: QuotaDecision) -> None:
        if not decision.admitted:
            raise QuotaExceededError(decision.kind.value, limit=decision.limit, current=decision.current)
