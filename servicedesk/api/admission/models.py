# servicedesk/api/admission/models.py
import uuid as uuid_pkg
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PipelineCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    year: int = Field(ge=1900, le=3000)


class PipelineRead(BaseModel):
    id: int
    name: str
    year: int
    created_at: datetime
    updated_at: datetime


class StepCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    slug: Optional[str] = None
    is_final: bool = False


class StepUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    slug: Optional[str] = None
    is_final: Optional[bool] = None


class StepRead(BaseModel):
    id: int
    pipeline_id: int
    title: str
    slug: str
    ord: int
    is_final: bool


class StepReorder(BaseModel):
    step_ids: List[int]


class PipelineDetail(PipelineRead):
    steps: List[StepRead] = []


class ApplicantCreate(BaseModel):
    pipeline_id: int
    name: str = Field(min_length=1, max_length=200)
    nisn: Optional[str] = None
    birthdate: Optional[str] = None
    parent_phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class ApplicantRead(BaseModel):
    id: int
    pipeline_id: int
    current_step_id: Optional[int] = None
    name: str
    nisn: Optional[str] = None
    birthdate: Optional[str] = None
    parent_phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ApplicantMove(BaseModel):
    to_step_id: int
    note: Optional[str] = None


class ApplicantHistoryRead(BaseModel):
    id: int
    applicant_id: int
    from_step_id: Optional[int] = None
    to_step_id: int
    by_user_id: Optional[uuid_pkg.UUID] = None
    note: Optional[str] = None
    moved_at: datetime
