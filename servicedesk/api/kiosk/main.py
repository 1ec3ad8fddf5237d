# servicedesk/api/kiosk/main.py
"""
Public kiosk endpoints. No authentication: visitors pick a service, take a
ticket and watch its status.
"""
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.config import get_settings
from ...core.constants import QueueStatus
from ...core.errors import ValidationError
from ...core.limiter import limiter
from ...db.engine import get_session
from ...services.catalog_service import CatalogService
from ...services.customer_service import CustomerService
from ...services.queue_service import QueueService
from ...services.settings_service import SettingsService
from ..dependencies import get_queue_service, get_timeout
from .models import KioskService, KioskTicketCreate, KioskTicketStatus

router = APIRouter()


def get_catalog_service(session: AsyncSession = Depends(get_session)) -> CatalogService:
    return CatalogService(session, get_timeout())


@router.get("/kiosk/services", response_model=List[KioskService])
async def api_kiosk_services(
    catalog: CatalogService = Depends(get_catalog_service),
    queue: QueueService = Depends(get_queue_service),
):
    open_now = await SettingsService(queue.session, queue.timeout).desk_open_now()
    services = []
    for service in await catalog.list_services(active_only=True):
        counts = await queue.queue_counts(service.id)
        services.append(
            {
                "id": service.id,
                "name": service.name,
                "code_prefix": service.code_prefix,
                "waiting": counts[QueueStatus.WAITING.value],
                "open_now": open_now,
            }
        )
    return services


@router.post("/kiosk/tickets", response_model=KioskTicketStatus, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_settings().kiosk_rate_limit)
async def api_kiosk_take_ticket(
    request: Request,
    body: KioskTicketCreate,
    queue: QueueService = Depends(get_queue_service),
):
    desk = SettingsService(queue.session, queue.timeout)
    if await desk.enforce_business_hours() and not await desk.desk_open_now():
        raise ValidationError("The desk is closed. Please come back during business hours.")

    # Same session: the customer row commits together with the ticket
    customers = CustomerService(queue.session, queue.timeout)
    customer = await customers.find_or_create(name=body.name, email=body.email, phone=body.phone)
    ticket = await queue.create_ticket(
        body.service_id, customer.id if customer else None, body.notes, actor=None
    )
    return await queue.describe(ticket)


@router.get("/kiosk/tickets/{ticket_id}", response_model=KioskTicketStatus)
async def api_kiosk_ticket_status(
    ticket_id: int,
    queue: QueueService = Depends(get_queue_service),
):
    return await queue.describe(await queue.get_ticket(ticket_id))
