# servicedesk/api/tickets/models.py
import uuid as uuid_pkg
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel


class TicketCreate(BaseModel):
    service_id: int
    customer_id: Optional[int] = None
    notes: Optional[str] = None


class TicketRead(BaseModel):
    id: int
    service_id: int
    number: str
    customer_id: Optional[int] = None
    status: str
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    queue_order: int
    claimed_by: Optional[uuid_pkg.UUID] = None
    created_at: datetime
    updated_at: datetime
    called_at: Optional[datetime] = None
    timer_start: Optional[datetime] = None
    timer_end: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    # Only set while WAITING
    position: Optional[int] = None
    ahead: Optional[int] = None


class HistoryEntryRead(BaseModel):
    id: int
    ticket_kind: str
    ticket_ref: str
    action: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_by: Optional[str] = None
    changed_at: datetime


# --- Status change bodies, discriminated on the target status ---


class ToWaiting(BaseModel):
    status: Literal["WAITING"]
    notes: Optional[str] = None


class ToCalled(BaseModel):
    status: Literal["CALLED"]


class ToInService(BaseModel):
    status: Literal["IN_SERVICE"]


class ToDone(BaseModel):
    status: Literal["DONE"]
    notes: str = Field(min_length=1)


class ToNoShow(BaseModel):
    status: Literal["NO_SHOW"]


class ToCanceled(BaseModel):
    status: Literal["CANCELED"]
    reason: str = Field(min_length=1)


StatusChange = Annotated[
    Union[ToWaiting, ToCalled, ToInService, ToDone, ToNoShow, ToCanceled],
    Field(discriminator="status"),
]


class ResolveBody(BaseModel):
    notes: str = Field(min_length=1)


class RequeueBody(BaseModel):
    notes: Optional[str] = None


class CancelBody(BaseModel):
    reason: str = Field(min_length=1)


class StatusChangeRequest(RootModel[StatusChange]):
    """PATCH body: {"status": "DONE", "notes": "..."}, {"status": "CANCELED", "reason": "..."}, ..."""
