# servicedesk/api/kiosk/models.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class KioskService(BaseModel):
    id: int
    name: str
    code_prefix: str
    waiting: int
    open_now: bool


class KioskTicketCreate(BaseModel):
    service_id: int
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


class KioskTicketStatus(BaseModel):
    """What the visitor's screen shows; no staff or customer details."""

    id: int
    number: str
    service_id: int
    status: str
    position: Optional[int] = None
    ahead: Optional[int] = None
    created_at: datetime
    called_at: Optional[datetime] = None
