# servicedesk/api/support_tickets/models.py
import uuid as uuid_pkg
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ...core.constants import TicketPriority, TicketStatus


class CustomerInline(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class SupportTicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = None
    priority: TicketPriority = TicketPriority.MEDIUM
    category: Optional[str] = None
    customer_id: Optional[int] = None
    # Used when customer_id is not given
    customer: Optional[CustomerInline] = None
    assigned_to: Optional[uuid_pkg.UUID] = None


class SupportTicketUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = None
    priority: Optional[TicketPriority] = None
    category: Optional[str] = None
    assigned_to: Optional[uuid_pkg.UUID] = None


class SupportTicketStatusUpdate(BaseModel):
    status: TicketStatus


class FollowUpCreate(BaseModel):
    details: Optional[str] = None
    priority: Optional[TicketPriority] = None


class VisitSupportCreate(BaseModel):
    summary: Optional[str] = Field(default=None, max_length=300)
    details: Optional[str] = None
    category: Optional[str] = None
    priority: TicketPriority = TicketPriority.MEDIUM


class SupportTicketRead(BaseModel):
    id: uuid_pkg.UUID
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    category: Optional[str] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    created_by: Optional[uuid_pkg.UUID] = None
    assigned_to: Optional[uuid_pkg.UUID] = None
    parent_id: Optional[uuid_pkg.UUID] = None
    queue_ticket_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None


class SupportTicketListResponse(BaseModel):
    items: List[SupportTicketRead]
    total: int
