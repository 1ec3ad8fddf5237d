# servicedesk/api/queue/main.py
from typing import Dict, List

from fastapi import APIRouter, Depends, Response, status

from ...core.users import require_staff
from ...models.user import User
from ...services.queue_service import QueueService
from ...services.ticket_service import SupportTicketService
from ..dependencies import get_queue_service, get_support_ticket_service
from ..support_tickets.models import SupportTicketRead, VisitSupportCreate
from ..tickets.models import TicketRead

router = APIRouter()


@router.get("/queue/{service_id}", response_model=List[TicketRead])
async def api_waiting_line(
    service_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    """WAITING tickets in line order, with position and ahead."""
    return await service.waiting_line(service_id)


@router.get("/queue/{service_id}/status", response_model=Dict[str, int])
async def api_queue_status(
    service_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    return await service.queue_counts(service_id)


@router.post(
    "/queue/{service_id}/claim",
    response_model=TicketRead,
    responses={204: {"description": "Nobody is waiting"}},
)
async def api_claim_next(
    service_id: int,
    service: QueueService = Depends(get_queue_service),
    current_user: User = Depends(require_staff),
):
    ticket = await service.claim_next(service_id, current_user)
    if ticket is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return await service.describe(ticket)


@router.post(
    "/queue/tickets/{ticket_id}/support",
    response_model=SupportTicketRead,
    status_code=status.HTTP_201_CREATED,
)
async def api_open_support_case(
    ticket_id: int,
    body: VisitSupportCreate,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    """Opens a support case linked to a desk visit."""
    ticket = await service.create_for_queue_ticket(
        ticket_id,
        current_user,
        summary=body.summary,
        details=body.details,
        category=body.category,
        priority=body.priority,
    )
    return await service.describe(ticket)


@router.get("/queue/tickets/{ticket_id}/support", response_model=List[SupportTicketRead])
async def api_support_cases_for_visit(
    ticket_id: int,
    service: SupportTicketService = Depends(get_support_ticket_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_for_queue_ticket(ticket_id)
