# servicedesk/services/ticket_service.py
"""
Support tickets: staff-created cases with a four-step lifecycle and
follow-up tickets linked to their parent.
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import col, func, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.constants import HistoryAction, TicketKind, TicketPriority, TicketStatus
from ..core.errors import NotFound, ValidationError
from ..db.engine import unit_of_work
from ..models.customer import Customer
from ..models.ticket import QueueTicket, SupportTicket, TicketHistory
from ..models.user import User
from ..utils.titles import follow_up_title
from .customer_service import CustomerService
from .history_service import HistoryService
from .transitions import SUPPORT_RESOLVED_STATES, check_support_transition

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "updated_at", "status", "priority", "title"}
EDITABLE_FIELDS = ("title", "description", "priority", "category", "assigned_to")


class SupportTicketService:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout
        self.history = HistoryService(session)
        self.customers = CustomerService(session, timeout)

    # --- Reads ---

    async def get_ticket(self, ticket_id: uuid.UUID) -> SupportTicket:
        ticket = await self.session.get(SupportTicket, ticket_id)
        if not ticket:
            raise NotFound(f"Ticket {ticket_id} not found")
        return ticket

    async def describe(self, ticket: SupportTicket) -> Dict[str, Any]:
        data = ticket.model_dump()
        customer = await self.session.get(Customer, ticket.customer_id) if ticket.customer_id else None
        data["customer_name"] = customer.name if customer else None
        data["customer_phone"] = customer.phone if customer else None
        return data

    async def list_tickets(
        self,
        status: Optional[TicketStatus] = None,
        priority: Optional[TicketPriority] = None,
        category: Optional[str] = None,
        customer_id: Optional[int] = None,
        q: Optional[str] = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Filtered, paginated listing. Unknown sort fields fall back to
        created_at. Returns {"items": [...], "total": n}.
        """
        filters = []
        if status:
            filters.append(SupportTicket.status == TicketStatus(status).value)
        if priority:
            filters.append(SupportTicket.priority == TicketPriority(priority).value)
        if category:
            filters.append(SupportTicket.category == category)
        if customer_id is not None:
            filters.append(SupportTicket.customer_id == customer_id)
        if q:
            pattern = f"%{q.strip().lower()}%"
            filters.append(
                or_(
                    func.lower(SupportTicket.title).like(pattern),
                    func.lower(SupportTicket.description).like(pattern),
                    func.lower(Customer.name).like(pattern),
                )
            )

        sort_column = col(getattr(SupportTicket, sort_by if sort_by in SORTABLE_FIELDS else "created_at"))
        order = sort_column.asc() if str(sort_dir).lower() == "asc" else sort_column.desc()

        statement = (
            select(SupportTicket, Customer)
            .join(Customer, col(SupportTicket.customer_id) == col(Customer.id), isouter=True)
            .where(*filters)
            .order_by(order, col(SupportTicket.id))
            .offset(offset)
            .limit(limit)
        )
        count_statement = (
            select(func.count())
            .select_from(SupportTicket)
            .join(Customer, col(SupportTicket.customer_id) == col(Customer.id), isouter=True)
            .where(*filters)
        )

        rows = (await self.session.exec(statement)).all()
        total = (await self.session.exec(count_statement)).one()

        items = []
        for ticket, customer in rows:
            data = ticket.model_dump()
            data["customer_name"] = customer.name if customer else None
            data["customer_phone"] = customer.phone if customer else None
            items.append(data)
        return {"items": items, "total": total}

    async def list_history(self, ticket_id: uuid.UUID) -> List[TicketHistory]:
        entries = await self.history.list_for(TicketKind.SUPPORT, ticket_id)
        if not entries:
            await self.get_ticket(ticket_id)
        return entries

    # --- Writes ---

    async def create_ticket(
        self,
        title: str,
        actor: User,
        description: Optional[str] = None,
        priority: TicketPriority = TicketPriority.MEDIUM,
        category: Optional[str] = None,
        customer_id: Optional[int] = None,
        customer: Optional[Dict[str, Optional[str]]] = None,
        assigned_to: Optional[uuid.UUID] = None,
    ) -> SupportTicket:
        """
        Creates an open ticket. The customer is either an existing id or
        found/created from name, email and phone.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if customer_id is not None:
            await self.customers.get_customer(customer_id)
        if assigned_to is not None:
            await self._get_user(assigned_to)

        async with unit_of_work(self.session, self.timeout):
            if customer_id is None and customer:
                found = await self.customers.find_or_create(**customer)
                customer_id = found.id if found else None
            ticket = await self._insert(
                title=title,
                description=description,
                priority=TicketPriority(priority).value,
                category=category,
                customer_id=customer_id,
                assigned_to=assigned_to,
                actor=actor,
            )
        logger.info(f"Support ticket {ticket.id} created by {actor.username}")
        return ticket

    async def create_for_queue_ticket(
        self,
        queue_ticket_id: int,
        actor: User,
        summary: Optional[str] = None,
        details: Optional[str] = None,
        category: Optional[str] = None,
        priority: TicketPriority = TicketPriority.MEDIUM,
    ) -> SupportTicket:
        """
        Opens a support case for a desk visit. The case keeps the visit's
        customer; without a summary the title names the queue number.
        """
        visit = await self.session.get(QueueTicket, queue_ticket_id)
        if not visit:
            raise NotFound(f"Queue ticket {queue_ticket_id} not found")
        title = (summary or "").strip() or f"Desk visit {visit.number}"
        customer_id = visit.customer_id

        async with unit_of_work(self.session, self.timeout):
            ticket = await self._insert(
                title=title,
                description=details,
                priority=TicketPriority(priority).value,
                category=category,
                customer_id=customer_id,
                assigned_to=None,
                actor=actor,
                queue_ticket_id=queue_ticket_id,
            )
        logger.info(f"Support ticket {ticket.id} opened for queue ticket {queue_ticket_id}")
        return ticket

    async def list_for_queue_ticket(self, queue_ticket_id: int) -> List[Dict[str, Any]]:
        if not await self.session.get(QueueTicket, queue_ticket_id):
            raise NotFound(f"Queue ticket {queue_ticket_id} not found")
        statement = (
            select(SupportTicket)
            .where(SupportTicket.queue_ticket_id == queue_ticket_id)
            .order_by(col(SupportTicket.created_at).desc())
        )
        result = await self.session.exec(statement)
        return [await self.describe(ticket) for ticket in result.all()]

    async def create_follow_up(
        self,
        ticket_id: uuid.UUID,
        actor: User,
        details: Optional[str] = None,
        priority: Optional[TicketPriority] = None,
    ) -> SupportTicket:
        """
        New ticket linked to `ticket_id` by parent_id, with the follow-up
        title and a description that references the original case.
        Allowed from any status, closed included.
        """
        parent = await self.get_ticket(ticket_id)
        customer = await self.session.get(Customer, parent.customer_id) if parent.customer_id else None
        description = (
            f"Ref Ticket: {parent.id}\n"
            f"Customer: {(customer.name if customer else None) or '-'}\n"
            f"Phone: {(customer.phone if customer else None) or '-'}\n\n"
            f"Details: {details or ''}"
        )
        async with unit_of_work(self.session, self.timeout):
            ticket = await self._insert(
                title=follow_up_title(parent.title),
                description=description,
                priority=TicketPriority(priority or parent.priority).value,
                category=parent.category,
                customer_id=parent.customer_id,
                assigned_to=None,
                actor=actor,
                parent_id=parent.id,
            )
            self.history.record(
                TicketKind.SUPPORT,
                parent.id,
                HistoryAction.FOLLOW_UP,
                new_value=str(ticket.id),
                changed_by=actor.username,
            )
        return ticket

    async def update_ticket(self, ticket_id: uuid.UUID, data: Dict[str, Any], actor: User) -> SupportTicket:
        """Edits content fields. Status changes go through change_status."""
        ticket = await self.get_ticket(ticket_id)
        old, new = {}, {}
        for field in EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == "title":
                value = (value or "").strip()
                if not value:
                    raise ValidationError("Title is required")
            elif field == "priority":
                if value is None:
                    continue
                value = TicketPriority(value).value
            elif field == "assigned_to" and value is not None:
                await self._get_user(value)
            if getattr(ticket, field) != value:
                old[field] = getattr(ticket, field)
                new[field] = value
        if not new:
            return ticket

        async with unit_of_work(self.session, self.timeout):
            for field, value in new.items():
                setattr(ticket, field, value)
            ticket.updated_at = datetime.utcnow()
            self.session.add(ticket)
            self.history.record(
                TicketKind.SUPPORT,
                ticket.id,
                HistoryAction.UPDATED,
                old_value=json.dumps(old, default=str),
                new_value=json.dumps(new, default=str),
                changed_by=actor.username,
                changed_at=ticket.updated_at,
            )
        return ticket

    async def change_status(self, ticket_id: uuid.UUID, status: TicketStatus, actor: User) -> SupportTicket:
        target = TicketStatus(status)
        ticket = await self.get_ticket(ticket_id)
        current = TicketStatus(ticket.status)
        check_support_transition(current, target)
        changed_by = actor.username

        async with unit_of_work(self.session, self.timeout):
            now = datetime.utcnow()
            ticket.status = target.value
            ticket.updated_at = now
            if target in SUPPORT_RESOLVED_STATES and ticket.resolved_at is None:
                ticket.resolved_at = now
            self.session.add(ticket)
            self.history.record(
                TicketKind.SUPPORT,
                ticket.id,
                HistoryAction.STATUS_CHANGED,
                old_value=current.value,
                new_value=target.value,
                changed_by=changed_by,
                changed_at=now,
            )
        logger.info(f"Support ticket {ticket.id}: {current.value} -> {target.value} by {changed_by}")
        return ticket

    async def delete_ticket(self, ticket_id: uuid.UUID, actor: User) -> None:
        ticket = await self.get_ticket(ticket_id)
        old_status, changed_by = ticket.status, actor.username
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(ticket)
            self.history.record(
                TicketKind.SUPPORT,
                ticket_id,
                HistoryAction.DELETED,
                old_value=old_status,
                changed_by=changed_by,
            )

    # --- Internals ---

    async def _insert(self, actor: User, **fields) -> SupportTicket:
        now = datetime.utcnow()
        ticket = SupportTicket(
            status=TicketStatus.OPEN.value,
            created_by=actor.id,
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.session.add(ticket)
        await self.session.flush()
        self.history.record(
            TicketKind.SUPPORT,
            ticket.id,
            HistoryAction.CREATED,
            new_value=TicketStatus.OPEN.value,
            changed_by=actor.username,
            changed_at=now,
        )
        return ticket

    async def _get_user(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFound(f"User {user_id} not found")
        return user
