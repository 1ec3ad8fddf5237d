# servicedesk/models/service.py
"""
Desk services a visitor can queue for, and the counters that serve them.
"""
from datetime import datetime
from typing import List, Optional

from sqlmodel import Field, SQLModel


class Service(SQLModel, table=True):
    __tablename__ = "services"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=120)
    code_prefix: str = Field(unique=True, nullable=False, max_length=3)  # e.g. "ADM" -> ADM001
    is_active: bool = Field(default=True)
    sla_warn_minutes: int = Field(default=10)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Counter(SQLModel, table=True):
    __tablename__ = "counters"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=120)
    allowed_service_ids: str = Field(default="")  # comma separated service ids
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def service_ids(self) -> List[int]:
        return [int(x) for x in self.allowed_service_ids.split(",") if x.strip()]
