# servicedesk/api/customers/main.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.users import require_staff
from ...db.engine import get_session
from ...models.user import User
from ...services.customer_service import CustomerService
from ..dependencies import get_timeout
from .models import CustomerCreate, CustomerRead, CustomerUpdate

router = APIRouter()


def get_customer_service(session: AsyncSession = Depends(get_session)) -> CustomerService:
    return CustomerService(session, get_timeout())


@router.get("/customers", response_model=List[CustomerRead])
async def api_list_customers(
    q: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_customers(q=q, limit=limit, offset=offset)


@router.post("/customers", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
async def api_create_customer(
    customer: CustomerCreate,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(require_staff),
):
    return await service.create_customer(customer.model_dump())


@router.get("/customers/{customer_id}", response_model=CustomerRead)
async def api_get_customer(
    customer_id: int,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(require_staff),
):
    return await service.get_customer(customer_id)


@router.put("/customers/{customer_id}", response_model=CustomerRead)
async def api_update_customer(
    customer_id: int,
    customer_update: CustomerUpdate,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(require_staff),
):
    return await service.update_customer(customer_id, customer_update.model_dump(exclude_unset=True))
