# src/instances/api/routes/instances.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.dependencies import get_current_actor, get_orchestrator
from src.instances.api.schemas import (
    ConnectResponse,
    CreatedInstanceResponse,
    CreateInstanceRequest,
    InstanceListResponse,
    InstanceResponse,
    InstanceStatusResponse,
    UpdateInstanceRequest,
)
from src.instances.application.services.instance_orchestrator import InstanceOrchestrator
from src.shared.roles import Actor

router = APIRouter(prefix="/api/instances", tags=["instances"])


@router.get("", response_model=InstanceListResponse)
async def list_instances(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceListResponse:
    """All instances for administrators, own instances otherwise."""
    result = await orchestrator.list_instances(actor, page=page, limit=limit)
    return InstanceListResponse.from_page(result)


@router.get("/my", response_model=InstanceListResponse)
async def list_my_instances(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceListResponse:
    result = await orchestrator.list_instances(actor, page=page, limit=limit, mine_only=True)
    return InstanceListResponse.from_page(result)


@router.post("", response_model=CreatedInstanceResponse, status_code=status.HTTP_201_CREATED)
async def create_instance(
    payload: CreateInstanceRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> CreatedInstanceResponse:
    view = await orchestrator.create_instance(
        actor,
        name=payload.name,
        integration=payload.integration,
        settings=payload.settings.to_domain() if payload.settings else None,
    )
    return CreatedInstanceResponse.from_view(view)


@router.get("/{instance_id}", response_model=InstanceResponse)
async def get_instance(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    return InstanceResponse.from_domain(await orchestrator.get_instance(actor, instance_id))


@router.put("/{instance_id}", response_model=InstanceResponse)
async def update_instance(
    instance_id: UUID,
    payload: UpdateInstanceRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    instance = await orchestrator.update_settings(actor, instance_id, payload.settings.to_domain())
    return InstanceResponse.from_domain(instance)


@router.delete("/{instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_instance(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> None:
    await orchestrator.delete(actor, instance_id)


@router.get("/{instance_id}/status", response_model=InstanceStatusResponse)
async def get_instance_status(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceStatusResponse:
    return InstanceStatusResponse.from_view(await orchestrator.get_status(actor, instance_id))


@router.post("/{instance_id}/connect", response_model=ConnectResponse)
async def connect_instance(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> ConnectResponse:
    return ConnectResponse.from_view(await orchestrator.connect(actor, instance_id))


@router.post("/{instance_id}/disconnect", response_model=InstanceResponse)
async def disconnect_instance(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    return InstanceResponse.from_domain(await orchestrator.disconnect(actor, instance_id))


@router.post("/{instance_id}/restart", response_model=InstanceResponse)
async def restart_instance(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceResponse:
    return InstanceResponse.from_domain(await orchestrator.restart(actor, instance_id))
