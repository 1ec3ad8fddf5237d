# servicedesk/services/history_service.py
from datetime import datetime
from typing import List, Optional

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.constants import HistoryAction, TicketKind
from ..models.ticket import TicketHistory


class HistoryService:
    """
    Append-only ticket history.

    `record` only adds the row to the caller's session; it is committed by
    the same unit of work that mutates the ticket.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        kind: TicketKind,
        ticket_ref,
        action: HistoryAction,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        changed_by: Optional[str] = None,
        changed_at: Optional[datetime] = None,
    ) -> TicketHistory:
        entry = TicketHistory(
            ticket_kind=kind.value,
            ticket_ref=str(ticket_ref),
            action=action.value,
            old_value=old_value,
            new_value=new_value,
            changed_by=changed_by or "system",
            changed_at=changed_at or datetime.utcnow(),
        )
        self.session.add(entry)
        return entry

    async def list_for(self, kind: TicketKind, ticket_ref) -> List[TicketHistory]:
        """Entries for one ticket, newest first."""
        statement = (
            select(TicketHistory)
            .where(TicketHistory.ticket_kind == kind.value)
            .where(TicketHistory.ticket_ref == str(ticket_ref))
            .order_by(col(TicketHistory.changed_at).desc(), col(TicketHistory.id).desc())
        )
        result = await self.session.exec(statement)
        return list(result.all())
