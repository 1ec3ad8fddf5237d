# servicedesk/api/tickets/main.py
from typing import List

from fastapi import APIRouter, Depends, Request, status

from ...core.audit import log_action
from ...core.constants import QueueStatus
from ...core.users import require_staff, require_supervisor
from ...models.user import User
from ...services.queue_service import QueueService
from ..dependencies import get_queue_service
from .models import (
    CancelBody,
    HistoryEntryRead,
    RequeueBody,
    ResolveBody,
    StatusChangeRequest,
    TicketCreate,
    TicketRead,
)

router = APIRouter()


@router.post("/tickets", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
async def api_create_ticket(
    body: TicketCreate,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    ticket = await service.create_ticket(body.service_id, body.customer_id, body.notes, actor=current_user)
    return await service.describe(ticket)


@router.get("/tickets/{ticket_id}", response_model=TicketRead)
async def api_get_ticket(
    ticket_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.get_ticket(ticket_id))


@router.patch("/tickets/{ticket_id}/status", response_model=TicketRead)
async def api_change_status(
    ticket_id: int,
    body: StatusChangeRequest,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    change = body.root
    ticket = await service.change_status(
        ticket_id,
        QueueStatus(change.status),
        current_user,
        notes=getattr(change, "notes", None),
        reason=getattr(change, "reason", None),
    )
    return await service.describe(ticket)


@router.post("/tickets/{ticket_id}/claim", response_model=TicketRead)
async def api_claim_ticket(
    ticket_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.claim(ticket_id, current_user))


@router.post("/tickets/{ticket_id}/start", response_model=TicketRead)
async def api_start_ticket(
    ticket_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.start(ticket_id, current_user))


@router.post("/tickets/{ticket_id}/resolve", response_model=TicketRead)
async def api_resolve_ticket(
    ticket_id: int,
    body: ResolveBody,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.resolve(ticket_id, body.notes, current_user))


@router.post("/tickets/{ticket_id}/requeue", response_model=TicketRead)
async def api_requeue_ticket(
    ticket_id: int,
    body: RequeueBody | None = None,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    notes = body.notes if body else None
    return await service.describe(await service.requeue(ticket_id, current_user, notes))


@router.post("/tickets/{ticket_id}/no-show", response_model=TicketRead)
async def api_no_show_ticket(
    ticket_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.no_show(ticket_id, current_user))


@router.post("/tickets/{ticket_id}/cancel", response_model=TicketRead)
async def api_cancel_ticket(
    ticket_id: int,
    body: CancelBody,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.cancel(ticket_id, body.reason, current_user))


@router.get("/tickets/{ticket_id}/history", response_model=List[HistoryEntryRead])
async def api_ticket_history(
    ticket_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_history(ticket_id)


@router.delete("/tickets/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_ticket(
    ticket_id: int,
    request: Request,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_supervisor),
):
    await service.delete_ticket(ticket_id, current_user)
    log_action("DELETE", "queue_ticket", str(ticket_id), user=current_user, request=request)
