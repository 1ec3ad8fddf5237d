# servicedesk/api/services/models.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    code_prefix: str
    is_active: bool = True
    sla_warn_minutes: int = Field(default=10, ge=1)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    code_prefix: Optional[str] = None
    is_active: Optional[bool] = None
    sla_warn_minutes: Optional[int] = Field(default=None, ge=1)


class ServiceRead(BaseModel):
    id: int
    name: str
    code_prefix: str
    is_active: bool
    sla_warn_minutes: int
    created_at: datetime


class CounterCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    service_ids: List[int] = []
    is_active: bool = True


class CounterUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    service_ids: Optional[List[int]] = None
    is_active: Optional[bool] = None


class CounterRead(BaseModel):
    id: int
    name: str
    service_ids: List[int]
    is_active: bool
    created_at: datetime
