# servicedesk/services/stats_service.py
from typing import Any, Dict

from sqlmodel import func, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.constants import QueueStatus, TicketPriority, TicketStatus
from ..models.ticket import QueueTicket, SupportTicket


class StatsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_dashboard_stats(self) -> Dict[str, Any]:
        """
        Support ticket counts by status, open urgent tickets and the number
        of visitors waiting across every queue.
        """
        by_status = {status.value: 0 for status in TicketStatus}
        result = await self.session.exec(
            select(SupportTicket.status, func.count()).group_by(SupportTicket.status)
        )
        for status, count in result.all():
            by_status[status] = count

        urgent = await self.session.exec(
            select(func.count())
            .select_from(SupportTicket)
            .where(SupportTicket.priority == TicketPriority.URGENT.value)
            .where(SupportTicket.status != TicketStatus.CLOSED.value)
        )
        waiting = await self.session.exec(
            select(func.count())
            .select_from(QueueTicket)
            .where(QueueTicket.status == QueueStatus.WAITING.value)
        )
        return {
            "tickets_by_status": by_status,
            "tickets_total": sum(by_status.values()),
            "urgent_open": urgent.one(),
            "queue_waiting": waiting.one(),
        }
