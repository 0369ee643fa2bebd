# src/instances/api/routes/test_console.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from src.dependencies import get_current_actor, get_orchestrator
from src.instances.api.schemas import (
    CheckNumberRequest,
    CheckNumberResponse,
    InstanceStatusResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from src.instances.application.services.instance_orchestrator import InstanceOrchestrator
from src.shared.roles import Actor

router = APIRouter(prefix="/api/test", tags=["test-console"])


@router.post("/send-message", response_model=SendMessageResponse)
async def send_test_message(
    payload: SendMessageRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> SendMessageResponse:
    record = await orchestrator.send_message(
        actor,
        payload.instance_id,
        to=payload.number,
        body=payload.message,
        kind=payload.type,
        media_url=payload.media_url,
    )
    return SendMessageResponse.from_record(record)


@router.post("/check-number", response_model=CheckNumberResponse)
async def check_whatsapp_number(
    payload: CheckNumberRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> CheckNumberResponse:
    check = await orchestrator.check_number(actor, payload.instance_id, payload.number)
    return CheckNumberResponse.from_check(check)


@router.get("/qrcode/{instance_id}", response_model=InstanceStatusResponse)
async def get_instance_qr_code(
    instance_id: UUID,
    actor: Actor = Depends(get_current_actor),
    orchestrator: InstanceOrchestrator = Depends(get_orchestrator),
) -> InstanceStatusResponse:
    return InstanceStatusResponse.from_view(await orchestrator.get_qr_code(actor, instance_id))
