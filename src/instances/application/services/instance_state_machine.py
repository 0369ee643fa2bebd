"""
Instance State Machine
Authoritative lifecycle state, per-instance serialization and reconciliation
"""
from __future__ import annotations

from contextlib import AsyncExitStack, nullcontext
from typing import Any, AsyncContextManager, Awaitable, Callable, Optional, Tuple, TypeVar
from uuid import UUID

from src.config import Settings
from src.gateway.domain.exceptions import GatewayError, GatewayRejectedError
from src.gateway.domain.protocols import ConnectResult, GatewayStatus, InstanceGateway
from src.instances.domain.entities.instance import (
    Instance,
    InstanceSettings,
    InstanceState,
    Integration,
)
from src.instances.domain.exceptions import (
    DuplicateInstanceNameError,
    InstanceBusyError,
    InstanceNotFoundError,
)
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol
from src.instances.domain.state_machine import (
    Operation,
    guard,
    is_allowed,
    resolve_reported_state,
)
from src.shared.exceptions import ResourceBusyError, StorageFailureError
from src.shared.infrastructure.locks import IKeyedLocks, LockUnavailableError
from src.shared.logging import get_logger
from src.shared.shield import ShieldedRunner
from src.shared.timeutils import utcnow

logger = get_logger(__name__)

T = TypeVar("T")


class InstanceStateMachine:
    """
    Applies the lifecycle transition table to stored instances.

    - One keyed lock per instance ("instance:<id>"); interactive operations
      fail fast with InstanceBusyError, delete and reconciliation queue for
      a bounded time.
    - The instance is re-read from the store after the lock is taken; no
      state is cached between operations.
    - The locked unit (gateway call + commit) runs as its own task and is
      shielded from caller cancellation.
    - No open transaction is held across a gateway call.
    """

    def __init__(
        self,
        uow_factory: Callable[[], ControlPlaneUnitOfWorkProtocol],
        gateway: InstanceGateway,
        locks: IKeyedLocks,
        settings: Settings,
        *,
        runner: Optional[ShieldedRunner] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._locks = locks
        self._settings = settings
        self._runner = runner or ShieldedRunner()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: UUID,
        name: str,
        integration: Integration = Integration.WHATSAPP_BAILEYS,
        settings: Optional[InstanceSettings] = None,
        *,
        settle: Optional[Callable[[], AsyncContextManager[None]]] = None,
    ) -> Tuple[Instance, Optional[str]]:
        """
        Create the gateway-side instance and persist it as DISCONNECTED.

        Args:
            settle: Context the persisting write runs in (the owner's quota
                reservation is released inside it)

        Returns:
            (instance, initial QR code if the gateway issued one)

        Raises:
            DuplicateInstanceNameError: If the name is taken
            ResourceBusyError: Another create for the same name is still running
            GatewayError: Instance not created
            StorageFailureError: Gateway instance created but not persisted
                (the gateway instance is deleted again best-effort)
        """
        instance = Instance(
            owner_id=owner_id,
            name=name,
            integration=integration,
            settings=settings or InstanceSettings(),
        )

        async def work() -> Tuple[Instance, Optional[str]]:
            async with self._uow_factory() as uow:
                if await uow.instances.get_by_name(instance.name) is not None:
                    raise DuplicateInstanceNameError(instance.name)

            created = await self._gateway.create_instance(
                instance.name, instance.integration.value, instance.settings.to_gateway()
            )
            instance.pairing_token = created.pairing_token

            try:
                async with (settle() if settle is not None else nullcontext()):
                    async with self._uow_factory() as uow:
                        await uow.instances.add(instance)
                        await uow.commit()
            except StorageFailureError:
                await self._compensate_create(instance)
                raise

            logger.info(
                "instance_created",
                instance_id=str(instance.id),
                owner_id=str(owner_id),
                name=instance.name,
                to_state=instance.state.value,
            )
            return instance, created.qr_code

        return await self._run_locked(
            f"instance-name:{instance.name.lower()}",
            work,
            wait=self._settings.INSTANCE_QUEUE_WAIT_SECONDS,
            busy=lambda: ResourceBusyError(
                "Another request is creating an instance with this name, try again",
                details={"name": instance.name},
            ),
        )

    async def _compensate_create(self, instance: Instance) -> None:
        try:
            await self._gateway.delete(instance.name, instance.pairing_token)
        except GatewayError as e:
            logger.warning(
                "gateway_delete_failed",
                instance_id=str(instance.id),
                name=instance.name,
                operation="create_compensation",
                error=str(e),
            )

    # ------------------------------------------------------------------
    # Interactive transitions (non-blocking)
    # ------------------------------------------------------------------

    async def connect(self, instance_id: UUID) -> Tuple[Instance, ConnectResult]:
        return await self._transition(
            instance_id,
            Operation.CONNECT,
            lambda inst: self._gateway.connect(inst.name, inst.pairing_token),
        )

    async def disconnect(self, instance_id: UUID) -> Instance:
        instance, _ = await self._transition(
            instance_id,
            Operation.DISCONNECT,
            lambda inst: self._gateway.disconnect(inst.name, inst.pairing_token),
        )
        return instance

    async def restart(self, instance_id: UUID) -> Instance:
        instance, _ = await self._transition(
            instance_id,
            Operation.RESTART,
            lambda inst: self._gateway.restart(inst.name, inst.pairing_token),
        )
        return instance

    async def _transition(
        self,
        instance_id: UUID,
        operation: Operation,
        call: Callable[[Instance], Awaitable[T]],
    ) -> Tuple[Instance, T]:
        async def work() -> Tuple[Instance, T]:
            instance = await self._load(instance_id)
            transition = guard(instance.state, operation)
            try:
                result = await call(instance)
            except GatewayError as e:
                self._set_state(instance, transition.on_failure, operation, error=e.message)
                await self._persist(instance)
                raise
            self._set_state(instance, transition.on_success, operation)
            if operation in (Operation.CONNECT, Operation.RESTART):
                # a new pairing attempt starts now, whatever the previous state
                instance.status_failures = 0
                instance.state_changed_at = utcnow()
            await self._persist(instance)
            return instance, result

        return await self._run_locked(self._key(instance_id), work, wait=0, busy=lambda: InstanceBusyError(instance_id))

    # ------------------------------------------------------------------
    # Queued operations
    # ------------------------------------------------------------------

    async def delete(self, instance_id: UUID) -> Instance:
        """
        Remove the instance. The gateway delete is best effort: the local
        record is removed even when it fails.
        """
        async def work() -> Instance:
            instance = await self._load(instance_id)
            guard(instance.state, Operation.DELETE)
            try:
                await self._gateway.delete(instance.name, instance.pairing_token)
            except GatewayError as e:
                logger.warning(
                    "gateway_delete_failed",
                    instance_id=str(instance.id),
                    name=instance.name,
                    error_code=e.code,
                    error=e.message,
                )

            async with self._uow_factory() as uow:
                await uow.instances.delete(instance.id)
                await uow.commit()
            logger.info(
                "instance_transition",
                instance_id=str(instance.id),
                operation=Operation.DELETE.value,
                from_state=instance.state.value,
                to_state="REMOVED",
            )
            return instance

        return await self._run_locked(
            self._key(instance_id),
            work,
            wait=self._settings.INSTANCE_QUEUE_WAIT_SECONDS,
            busy=lambda: InstanceBusyError(instance_id),
        )

    async def refresh_status(self, instance_id: UUID) -> Tuple[Instance, GatewayStatus]:
        """
        Query the gateway and reconcile local state with its report.

        Poll failures are counted; a CONNECTING instance becomes FAILED
        immediately on a gateway rejection, or once
        STATUS_FAILURE_THRESHOLD consecutive polls failed. The gateway error
        is re-raised after the bookkeeping is persisted.
        """
        async def work() -> Tuple[Instance, GatewayStatus]:
            instance = await self._load(instance_id)
            try:
                report = await self._gateway.get_status(instance.name, instance.pairing_token)
            except GatewayError as e:
                instance.status_failures += 1
                instance.last_error = e.message
                if instance.state == InstanceState.CONNECTING and (
                    isinstance(e, GatewayRejectedError)
                    or instance.status_failures >= self._settings.STATUS_FAILURE_THRESHOLD
                ):
                    self._set_state(instance, InstanceState.FAILED, "status", error=e.message)
                logger.warning(
                    "instance_status_poll_failed",
                    instance_id=str(instance.id),
                    failures=instance.status_failures,
                    error_code=e.code,
                )
                await self._persist(instance)
                raise

            new_state, anomaly = resolve_reported_state(report.state)
            error = None
            if anomaly:
                logger.warning(
                    "instance_status_anomaly",
                    instance_id=str(instance.id),
                    name=instance.name,
                    reported_state=report.state,
                    from_state=instance.state.value,
                )
                error = f"Unrecognized gateway state '{report.state}'"
            elif new_state == InstanceState.FAILED:
                error = "Gateway reported the connection as refused"

            instance.status_failures = 0
            if report.phone_number:
                instance.phone_number = report.phone_number
            self._set_state(instance, new_state, "status", error=error)
            await self._persist(instance)
            return instance, report

        return await self._run_locked(
            self._key(instance_id),
            work,
            wait=self._settings.INSTANCE_QUEUE_WAIT_SECONDS,
            busy=lambda: InstanceBusyError(instance_id),
        )

    async def expire(self, instance_id: UUID, *, older_than: float) -> Instance:
        """
        Fail an instance that has been CONNECTING for at least `older_than`
        seconds. A no-op when it has moved on in the meantime.
        """
        async def work() -> Instance:
            instance = await self._load(instance_id)
            if not is_allowed(instance.state, Operation.EXPIRE) or instance.connecting_for() < older_than:
                return instance
            self._set_state(
                instance,
                guard(instance.state, Operation.EXPIRE).on_success,
                Operation.EXPIRE,
                error=f"Pairing did not complete within {int(older_than)}s",
            )
            await self._persist(instance)
            return instance

        return await self._run_locked(
            self._key(instance_id),
            work,
            wait=self._settings.INSTANCE_QUEUE_WAIT_SECONDS,
            busy=lambda: InstanceBusyError(instance_id),
        )

    async def update_settings(self, instance_id: UUID, settings: InstanceSettings) -> Instance:
        """Replace pass-through settings. Rows are written whole, so this takes the lock too."""
        async def work() -> Instance:
            instance = await self._load(instance_id)
            instance.settings = settings
            instance.updated_at = utcnow()
            await self._persist(instance)
            return instance

        return await self._run_locked(
            self._key(instance_id),
            work,
            wait=self._settings.INSTANCE_QUEUE_WAIT_SECONDS,
            busy=lambda: InstanceBusyError(instance_id),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _key(instance_id: UUID) -> str:
        return f"instance:{instance_id}"

    async def _run_locked(
        self,
        key: str,
        work: Callable[[], Awaitable[T]],
        *,
        wait: Optional[float],
        busy: Callable[[], Exception],
    ) -> T:
        async def unit() -> T:
            stack = AsyncExitStack()
            try:
                await stack.enter_async_context(self._locks.hold(key, wait=wait))
            except LockUnavailableError:
                logger.info("instance_lock_busy", key=key, wait=wait)
                raise busy() from None
            async with stack:
                return await work()

        return await self._runner.run(unit)

    async def drain(self) -> None:
        """Wait for in-flight locked units (used on shutdown)."""
        await self._runner.drain()

    async def _load(self, instance_id: UUID) -> Instance:
        async with self._uow_factory() as uow:
            instance = await uow.instances.get(instance_id)
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        return instance

    async def _persist(self, instance: Instance) -> None:
        async with self._uow_factory() as uow:
            await uow.instances.update(instance)
            await uow.commit()

    def _set_state(
        self,
        instance: Instance,
        new_state: Optional[InstanceState],
        operation: Any,
        *,
        error: Optional[str] = None,
    ) -> None:
        if new_state is None:
            return
        previous = instance.state
        now = utcnow()
        if new_state != previous:
            instance.state = new_state
            instance.state_changed_at = now
            logger.info(
                "instance_transition",
                instance_id=str(instance.id),
                operation=getattr(operation, "value", operation),
                from_state=previous.value,
                to_state=new_state.value,
            )
        instance.last_error = error
        instance.updated_at = now
