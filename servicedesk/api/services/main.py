# servicedesk/api/services/main.py
"""Desk services and counters. Reads for staff, writes for Supervisors."""
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.audit import log_action
from ...core.users import require_staff, require_supervisor
from ...db.engine import get_session
from ...models.service import Counter
from ...models.user import User
from ...services.catalog_service import CatalogService
from ..dependencies import get_timeout
from .models import (
    CounterCreate,
    CounterRead,
    CounterUpdate,
    ServiceCreate,
    ServiceRead,
    ServiceUpdate,
)

router = APIRouter()


def get_catalog_service(session: AsyncSession = Depends(get_session)) -> CatalogService:
    return CatalogService(session, get_timeout())


def _counter_out(counter: Counter) -> dict:
    return {
        "id": counter.id,
        "name": counter.name,
        "service_ids": counter.service_ids,
        "is_active": counter.is_active,
        "created_at": counter.created_at,
    }


# --- Services ---


@router.get("/services", response_model=List[ServiceRead])
async def api_list_services(
    active_only: bool = False,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_staff),
):
    return await catalog.list_services(active_only=active_only)


@router.get("/services/{service_id}", response_model=ServiceRead)
async def api_get_service(
    service_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_staff),
):
    return await catalog.get_service(service_id)


@router.post("/services", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def api_create_service(
    body: ServiceCreate,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_supervisor),
):
    return await catalog.create_service(body.model_dump())


@router.put("/services/{service_id}", response_model=ServiceRead)
async def api_update_service(
    service_id: int,
    body: ServiceUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_supervisor),
):
    return await catalog.update_service(service_id, body.model_dump(exclude_unset=True))


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_service(
    service_id: int,
    request: Request,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_supervisor),
):
    await catalog.delete_service(service_id)
    log_action("DELETE", "service", str(service_id), user=current_user, request=request)


# --- Counters ---


@router.get("/counters", response_model=List[CounterRead])
async def api_list_counters(
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_staff),
):
    return [_counter_out(c) for c in await catalog.list_counters()]


@router.get("/counters/{counter_id}", response_model=CounterRead)
async def api_get_counter(
    counter_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_staff),
):
    return _counter_out(await catalog.get_counter(counter_id))


@router.post("/counters", response_model=CounterRead, status_code=status.HTTP_201_CREATED)
async def api_create_counter(
    body: CounterCreate,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_supervisor),
):
    counter = await catalog.create_counter(body.name, body.service_ids, body.is_active)
    return _counter_out(counter)


@router.put("/counters/{counter_id}", response_model=CounterRead)
async def api_update_counter(
    counter_id: int,
    body: CounterUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_supervisor),
):
    counter = await catalog.update_counter(counter_id, body.model_dump(exclude_unset=True))
    return _counter_out(counter)


@router.delete("/counters/{counter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_counter(
    counter_id: int,
    request: Request,
    catalog: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(require_supervisor),
):
    await catalog.delete_counter(counter_id)
    log_action("DELETE", "counter", str(counter_id), user=current_user, request=request)
