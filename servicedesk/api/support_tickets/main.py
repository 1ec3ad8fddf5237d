# servicedesk/api/support_tickets/main.py
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...core.audit import log_action
from ...core.constants import TicketPriority, TicketStatus
from ...core.users import require_staff, require_supervisor
from ...models.user import User
from ...services.ticket_service import SupportTicketService
from ..dependencies import get_support_ticket_service
from ..tickets.models import HistoryEntryRead
from .models import (
    FollowUpCreate,
    SupportTicketCreate,
    SupportTicketListResponse,
    SupportTicketRead,
    SupportTicketStatusUpdate,
    SupportTicketUpdate,
)

router = APIRouter()


@router.get("/support-tickets", response_model=SupportTicketListResponse)
async def api_list_support_tickets(
    status_filter: Optional[TicketStatus] = Query(default=None, alias="status"),
    priority: Optional[TicketPriority] = None,
    category: Optional[str] = None,
    customer_id: Optional[int] = None,
    q: Optional[str] = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_tickets(
        status=status_filter,
        priority=priority,
        category=category,
        customer_id=customer_id,
        q=q,
        sort_by=sort_by,
        sort_dir=sort_dir,
        limit=limit,
        offset=offset,
    )


@router.post("/support-tickets", response_model=SupportTicketRead, status_code=status.HTTP_201_CREATED)
async def api_create_support_ticket(
    body: SupportTicketCreate,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    ticket = await service.create_ticket(
        title=body.title,
        actor=current_user,
        description=body.description,
        priority=body.priority,
        category=body.category,
        customer_id=body.customer_id,
        customer=body.customer.model_dump() if body.customer else None,
        assigned_to=body.assigned_to,
    )
    return await service.describe(ticket)


@router.get("/support-tickets/{ticket_id}", response_model=SupportTicketRead)
async def api_get_support_ticket(
    ticket_id: uuid.UUID,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe(await service.get_ticket(ticket_id))


@router.put("/support-tickets/{ticket_id}", response_model=SupportTicketRead)
async def api_update_support_ticket(
    ticket_id: uuid.UUID,
    body: SupportTicketUpdate,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    ticket = await service.update_ticket(ticket_id, body.model_dump(exclude_unset=True), current_user)
    return await service.describe(ticket)


@router.patch("/support-tickets/{ticket_id}/status", response_model=SupportTicketRead)
async def api_change_support_ticket_status(
    ticket_id: uuid.UUID,
    body: SupportTicketStatusUpdate,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    ticket = await service.change_status(ticket_id, body.status, current_user)
    return await service.describe(ticket)


@router.post(
    "/support-tickets/{ticket_id}/follow-up",
    response_model=SupportTicketRead,
    status_code=status.HTTP_201_CREATED,
)
async def api_create_follow_up(
    ticket_id: uuid.UUID,
    body: FollowUpCreate | None = None,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    body = body or FollowUpCreate()
    ticket = await service.create_follow_up(ticket_id, current_user, details=body.details, priority=body.priority)
    return await service.describe(ticket)


@router.get("/support-tickets/{ticket_id}/history", response_model=List[HistoryEntryRead])
async def api_support_ticket_history(
    ticket_id: uuid.UUID,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_history(ticket_id)


@router.delete("/support-tickets/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_support_ticket(
    ticket_id: uuid.UUID,
    request: Request,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_supervisor),
):
    await service.delete_ticket(ticket_id, current_user)
    log_action("DELETE", "support_ticket", str(ticket_id), user=current_user, request=request)
