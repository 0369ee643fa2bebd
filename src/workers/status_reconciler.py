"""
Status reconciler

Periodically refreshes instances that are CONNECTING so that pairing
results, refusals and stalled pairings are picked up without a client
polling the status endpoint.
"""
from __future__ import annotations

from typing import Callable, List
from uuid import UUID

from src.instances.application.services.instance_orchestrator import InstanceOrchestrator
from src.instances.domain.entities.instance import InstanceState
from src.instances.domain.exceptions import InstanceBusyError, InstanceNotFoundError
from src.instances.domain.protocols.unit_of_work_protocol import ControlPlaneUnitOfWorkProtocol
from src.shared.exceptions import DomainError
from src.shared.logging import get_logger
from src.workers.base_worker import BaseWorker

logger = get_logger(__name__)


class StatusReconcilerWorker(BaseWorker):
    def __init__(
        self,
        uow_factory: Callable[[], ControlPlaneUnitOfWorkProtocol],
        orchestrator: InstanceOrchestrator,
        *,
        interval: float = 30,
        batch_size: int = 100,
    ):
        super().__init__("status_reconciler", interval=interval, batch_size=batch_size)
        self._uow_factory = uow_factory
        self._orchestrator = orchestrator

    async def _pending(self) -> List[UUID]:
        async with self._uow_factory() as uow:
            instances = await uow.instances.list_by_state(InstanceState.CONNECTING, limit=self.batch_size)
        return [i.id for i in instances]

    async def execute(self) -> bool:
        ok = True
        pending = await self._pending()
        for instance_id in pending:
            try:
                view = await self._orchestrator.reconcile(instance_id)
            except (InstanceBusyError, InstanceNotFoundError):
                # someone else is acting on it, or it was deleted meanwhile
                continue
            except DomainError as e:
                ok = False
                logger.warning(
                    "instance_reconcile_failed",
                    instance_id=str(instance_id),
                    error_code=e.code,
                    error=e.message,
                )
                continue
            logger.debug(
                "instance_reconciled",
                instance_id=str(instance_id),
                state=view.instance.state.value,
                gateway_state=view.gateway_state,
            )
        return ok
