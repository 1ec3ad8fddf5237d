# servicedesk/api/dashboard/main.py
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.users import require_staff
from ...db.engine import get_session
from ...models.user import User
from ...services.stats_service import StatsService

router = APIRouter()


class DashboardStats(BaseModel):
    tickets_by_status: Dict[str, int]
    tickets_total: int
    urgent_open: int
    queue_waiting: int


def get_stats_service(session: AsyncSession = Depends(get_session)) -> StatsService:
    return StatsService(session)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def api_dashboard_stats(
    service: StatsService = Depends(get_stats_service),
    current_user: User = Depends(require_staff),
):
    return await service.get_dashboard_stats()
