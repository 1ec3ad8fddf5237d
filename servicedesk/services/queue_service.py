# servicedesk/services/queue_service.py
"""
Queue ticket lifecycle: creation, status transitions, waiting-line reads.

Every mutation reads the ticket and validates the request first, then runs one
unit of work: a conditional UPDATE guarded by the observed status plus the
history entry. Rejected requests never reach the unit of work, so they never
roll back (and expire) objects the caller still holds. Subscribers are
notified only after the commit.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.constants import (
    EVENT_CREATE,
    EVENT_DELETE,
    HistoryAction,
    QueueAction,
    QueueStatus,
    TicketKind,
)
from ..core.errors import ConflictLostRace, InvalidStateTransition, NotFound, ValidationError
from ..core.websockets import Fanout, QueueEvent
from ..db.engine import unit_of_work
from ..models.customer import Customer
from ..models.service import Service
from ..models.ticket import QueueTicket, TicketHistory
from ..models.user import User
from .history_service import HistoryService
from .transitions import check_queue_transition, queue_action_for

logger = logging.getLogger(__name__)

CLAIM_NEXT_ATTEMPTS = 3
KIOSK_ACTOR = "kiosk"


def _actor_name(actor: Optional[User]) -> str:
    return actor.username if actor else KIOSK_ACTOR


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


class QueueService:
    def __init__(self, session: AsyncSession, fanout: Optional[Fanout] = None, timeout: float = 5.0):
        self.session = session
        self.fanout = fanout
        self.timeout = timeout
        self.history = HistoryService(session)

    # --- Reads ---

    async def get_ticket(self, ticket_id: int) -> QueueTicket:
        return await self._load(ticket_id)

    async def describe(self, ticket: QueueTicket) -> Dict[str, Any]:
        """Ticket fields plus its live position when it is waiting."""
        data = ticket.model_dump()
        data["position"] = None
        data["ahead"] = None
        if ticket.status == QueueStatus.WAITING.value:
            ahead = await self._count_ahead(ticket)
            data["position"] = ahead + 1
            data["ahead"] = ahead
        return data

    async def waiting_line(self, service_id: int) -> List[Dict[str, Any]]:
        """
        WAITING tickets of a service in line order, each with its 1-based
        position and the number of tickets ahead of it.
        """
        await self._get_service(service_id)
        statement = (
            select(QueueTicket)
            .where(QueueTicket.service_id == service_id)
            .where(QueueTicket.status == QueueStatus.WAITING.value)
            .order_by(col(QueueTicket.queue_order), col(QueueTicket.id))
        )
        result = await self.session.exec(statement)
        line = []
        for index, ticket in enumerate(result.all(), start=1):
            data = ticket.model_dump()
            data["position"] = index
            data["ahead"] = index - 1
            line.append(data)
        return line

    async def queue_counts(self, service_id: int) -> Dict[str, int]:
        await self._get_service(service_id)
        statement = (
            select(QueueTicket.status, func.count())
            .where(QueueTicket.service_id == service_id)
            .group_by(QueueTicket.status)
        )
        result = await self.session.exec(statement)
        counts = {status.value: 0 for status in QueueStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    async def list_history(self, ticket_id: int) -> List[TicketHistory]:
        """History newest first. Still readable after the ticket was deleted."""
        entries = await self.history.list_for(TicketKind.QUEUE, ticket_id)
        if not entries:
            await self._load(ticket_id)
        return entries

    # --- Creation / deletion ---

    async def create_ticket(
        self,
        service_id: int,
        customer_id: Optional[int] = None,
        notes: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> QueueTicket:
        service = await self._get_service(service_id)
        if not service.is_active:
            raise NotFound(f"Service {service_id} is not active")
        if customer_id is not None and not await self.session.get(Customer, customer_id):
            raise NotFound(f"Customer {customer_id} not found")
        prefix, changed_by = service.code_prefix, _actor_name(actor)

        async with unit_of_work(self.session, self.timeout):
            now = datetime.utcnow()
            ticket = QueueTicket(
                service_id=service_id,
                number=await self._next_number(service_id, prefix, now),
                customer_id=customer_id,
                notes=_clean(notes),
                status=QueueStatus.WAITING.value,
                queue_order=await self._next_order(service_id),
                created_at=now,
                updated_at=now,
            )
            self.session.add(ticket)
            await self.session.flush()
            self.history.record(
                TicketKind.QUEUE,
                ticket.id,
                HistoryAction.CREATED,
                new_value=QueueStatus.WAITING.value,
                changed_by=changed_by,
                changed_at=now,
            )
        logger.info(f"Queue ticket {ticket.number} created for service {prefix}")
        await self._publish(ticket, EVENT_CREATE)
        return ticket

    async def delete_ticket(self, ticket_id: int, actor: User) -> None:
        ticket = await self._load(ticket_id)
        old_status, changed_by = ticket.status, _actor_name(actor)
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(ticket)
            self.history.record(
                TicketKind.QUEUE,
                ticket_id,
                HistoryAction.DELETED,
                old_value=old_status,
                changed_by=changed_by,
            )
        await self._publish(ticket, EVENT_DELETE, new_status=None)

    # --- Transitions ---

    async def claim(self, ticket_id: int, actor: User) -> QueueTicket:
        if actor is None:
            raise ValidationError("A staff member is required to claim a ticket")
        return await self._transition(
            ticket_id, QueueAction.CLAIM, actor, lambda now: {"claimed_by": actor.id, "called_at": now}
        )

    async def start(self, ticket_id: int, actor: User) -> QueueTicket:
        return await self._transition(
            ticket_id, QueueAction.START, actor, lambda now: {"timer_start": now}
        )

    async def resolve(self, ticket_id: int, notes: Optional[str], actor: User) -> QueueTicket:
        notes = _clean(notes)
        if not notes:
            raise ValidationError("Resolution notes are required")
        return await self._transition(
            ticket_id,
            QueueAction.RESOLVE,
            actor,
            lambda now: {"timer_end": now, "resolved_at": now, "notes": notes},
        )

    async def requeue(self, ticket_id: int, actor: User, notes: Optional[str] = None) -> QueueTicket:
        notes = _clean(notes)

        async def back_of_line(ticket: QueueTicket, now: datetime) -> Dict[str, Any]:
            values = {
                "queue_order": await self._next_order(ticket.service_id),
                "claimed_by": None,
                "called_at": None,
                "timer_start": None,
            }
            if notes:
                values["notes"] = notes
            return values

        return await self._transition(ticket_id, QueueAction.REQUEUE, actor, async_values=back_of_line)

    async def no_show(self, ticket_id: int, actor: User) -> QueueTicket:
        return await self._transition(ticket_id, QueueAction.NO_SHOW, actor, lambda now: {})

    async def cancel(self, ticket_id: int, reason: Optional[str], actor: Optional[User]) -> QueueTicket:
        reason = _clean(reason)
        if not reason:
            raise ValidationError("A cancellation reason is required")
        return await self._transition(
            ticket_id, QueueAction.CANCEL, actor, lambda now: {"cancel_reason": reason}
        )

    async def change_status(
        self,
        ticket_id: int,
        status: QueueStatus,
        actor: User,
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> QueueTicket:
        """Applies whichever transition leads from the current status to `status`."""
        ticket = await self._load(ticket_id)
        action = queue_action_for(QueueStatus(ticket.status), QueueStatus(status))
        return await self.apply(action, ticket_id, actor, notes=notes, reason=reason)

    async def apply(
        self,
        action: QueueAction,
        ticket_id: int,
        actor: Optional[User],
        notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> QueueTicket:
        if action is QueueAction.CLAIM:
            return await self.claim(ticket_id, actor)
        if action is QueueAction.START:
            return await self.start(ticket_id, actor)
        if action is QueueAction.RESOLVE:
            return await self.resolve(ticket_id, notes, actor)
        if action is QueueAction.REQUEUE:
            return await self.requeue(ticket_id, actor, notes)
        if action is QueueAction.NO_SHOW:
            return await self.no_show(ticket_id, actor)
        return await self.cancel(ticket_id, reason, actor)

    async def claim_next(self, service_id: int, actor: User) -> Optional[QueueTicket]:
        """
        Claims the ticket at the front of the line. A lost race moves on to
        the next candidate; returns None when nobody is waiting.
        """
        await self._get_service(service_id)
        for _ in range(CLAIM_NEXT_ATTEMPTS):
            candidate = await self._front_of_line(service_id)
            if candidate is None:
                return None
            # The rollback of a lost claim expires every instance in the session
            candidate_id, candidate_number = candidate.id, candidate.number
            try:
                return await self.claim(candidate_id, actor)
            except (ConflictLostRace, InvalidStateTransition) as e:
                logger.info(f"Claim of {candidate_number} lost, trying next ticket: {e.detail}")
                if actor in self.session:
                    await self.session.refresh(actor)
        raise ConflictLostRace("The queue is busy, please retry")

    # --- Internals ---

    async def _transition(self, ticket_id, action, actor, values=None, async_values=None) -> QueueTicket:
        ticket = await self._load(ticket_id)
        current = QueueStatus(ticket.status)
        transition = check_queue_transition(current, action)
        number, changed_by = ticket.number, _actor_name(actor)

        async with unit_of_work(self.session, self.timeout):
            now = datetime.utcnow()
            changes = values(now) if values else await async_values(ticket, now)
            changes.update(status=transition.target.value, updated_at=now)

            # Guarded by the observed status: zero rows means someone got there first
            result = await self.session.execute(
                update(QueueTicket)
                .where(col(QueueTicket.id) == ticket_id)
                .where(col(QueueTicket.status) == current.value)
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictLostRace(f"Ticket {number} was changed by another user; reload and retry")

            self.history.record(
                TicketKind.QUEUE,
                ticket_id,
                HistoryAction.STATUS_CHANGED,
                old_value=current.value,
                new_value=transition.target.value,
                changed_by=changed_by,
                changed_at=now,
            )
            ticket = await self._load(ticket_id)

        logger.info(f"Ticket {number}: {current.value} -> {ticket.status} by {changed_by}")
        await self._publish(ticket, action.value)
        return ticket

    async def _load(self, ticket_id: int) -> QueueTicket:
        ticket = await self.session.get(QueueTicket, ticket_id, populate_existing=True)
        if not ticket:
            raise NotFound(f"Queue ticket {ticket_id} not found")
        return ticket

    async def _get_service(self, service_id: int) -> Service:
        service = await self.session.get(Service, service_id)
        if not service:
            raise NotFound(f"Service {service_id} not found")
        return service

    async def _front_of_line(self, service_id: int) -> Optional[QueueTicket]:
        statement = (
            select(QueueTicket)
            .where(QueueTicket.service_id == service_id)
            .where(QueueTicket.status == QueueStatus.WAITING.value)
            .order_by(col(QueueTicket.queue_order), col(QueueTicket.id))
            .limit(1)
        )
        result = await self.session.exec(statement)
        return result.first()

    async def _count_ahead(self, ticket: QueueTicket) -> int:
        statement = (
            select(func.count())
            .select_from(QueueTicket)
            .where(QueueTicket.service_id == ticket.service_id)
            .where(QueueTicket.status == QueueStatus.WAITING.value)
            .where(
                (col(QueueTicket.queue_order) < ticket.queue_order)
                | ((col(QueueTicket.queue_order) == ticket.queue_order) & (col(QueueTicket.id) < ticket.id))
            )
        )
        result = await self.session.exec(statement)
        return result.one()

    async def _next_order(self, service_id: int) -> int:
        statement = select(func.max(QueueTicket.queue_order)).where(QueueTicket.service_id == service_id)
        result = await self.session.exec(statement)
        current = result.one()
        return (current or 0) + 1

    async def _next_number(self, service_id: int, prefix: str, now: datetime) -> str:
        """Prefix plus today's running count for the service, e.g. ADM007."""
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        statement = (
            select(func.count())
            .select_from(QueueTicket)
            .where(QueueTicket.service_id == service_id)
            .where(QueueTicket.created_at >= day_start)
            .where(QueueTicket.created_at < day_start + timedelta(days=1))
        )
        result = await self.session.exec(statement)
        return f"{prefix}{result.one() + 1:03d}"

    async def _publish(self, ticket: QueueTicket, action: str, new_status: Optional[str] = "") -> None:
        if self.fanout is None:
            return
        status = ticket.status if new_status == "" else new_status
        await self.fanout.publish(
            QueueEvent(ticket_id=ticket.id, service_id=ticket.service_id, action=action, new_status=status)
        )
