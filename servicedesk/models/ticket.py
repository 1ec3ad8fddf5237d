# servicedesk/models/ticket.py
"""
Ticket models.

QueueTicket is the visitor ticket that moves through the desk queue.
SupportTicket is the staff-created case ticket (open/in_progress/resolved/closed).
TicketHistory is the append-only trail shared by both.
"""

import uuid as uuid_pkg
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.constants import QueueStatus, TicketPriority, TicketStatus


class QueueTicket(SQLModel, table=True):
    __tablename__ = "queue_tickets"

    id: Optional[int] = Field(default=None, primary_key=True)
    service_id: int = Field(foreign_key="services.id", index=True)
    number: str = Field(nullable=False, max_length=20)  # human-facing, e.g. "ADM007"
    customer_id: Optional[int] = Field(default=None, foreign_key="customers.id")
    status: str = Field(default=QueueStatus.WAITING.value, index=True)
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    # Position in the waiting line; bumped to the back on requeue
    queue_order: int = Field(default=0, index=True)

    claimed_by: Optional[uuid_pkg.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    called_at: Optional[datetime] = None
    timer_start: Optional[datetime] = None
    timer_end: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class SupportTicket(SQLModel, table=True):
    __tablename__ = "support_tickets"

    id: uuid_pkg.UUID = Field(default_factory=uuid_pkg.uuid4, primary_key=True)
    title: str = Field(nullable=False, max_length=300)
    description: Optional[str] = None
    priority: str = Field(default=TicketPriority.MEDIUM.value)
    status: str = Field(default=TicketStatus.OPEN.value, index=True)
    category: Optional[str] = Field(default=None, max_length=100)

    customer_id: Optional[int] = Field(default=None, foreign_key="customers.id", index=True)
    created_by: Optional[uuid_pkg.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    assigned_to: Optional[uuid_pkg.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    # Set on follow-up tickets
    parent_id: Optional[uuid_pkg.UUID] = Field(default=None, foreign_key="support_tickets.id", ondelete="SET NULL")
    # Set when the case was opened from a desk visit
    queue_ticket_id: Optional[int] = Field(
        default=None, foreign_key="queue_tickets.id", ondelete="SET NULL", index=True
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    resolved_at: Optional[datetime] = None


class TicketHistory(SQLModel, table=True):
    """
    One row per mutating operation on a ticket. Never updated or deleted.
    Rows outlive the ticket they describe.
    """

    __tablename__ = "ticket_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    ticket_kind: str = Field(index=True)  # queue | support
    ticket_ref: str = Field(index=True)
    action: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_by: Optional[str] = None  # username, or "kiosk" / "system"
    changed_at: datetime = Field(default_factory=datetime.utcnow, index=True)
