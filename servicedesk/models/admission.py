# servicedesk/models/admission.py
"""
Admission pipeline board: pipelines with ordered steps and the applicants
moving through them.
"""
import uuid as uuid_pkg
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Pipeline(SQLModel, table=True):
    __tablename__ = "pipelines"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=200)
    year: int
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class PipelineStep(SQLModel, table=True):
    __tablename__ = "pipeline_steps"

    id: Optional[int] = Field(default=None, primary_key=True)
    pipeline_id: int = Field(foreign_key="pipelines.id", index=True)
    title: str = Field(nullable=False, max_length=200)
    slug: str = Field(max_length=200)
    ord: int = Field(default=0)
    is_final: bool = Field(default=False)


class Applicant(SQLModel, table=True):
    __tablename__ = "applicants"

    id: Optional[int] = Field(default=None, primary_key=True)
    pipeline_id: int = Field(foreign_key="pipelines.id", index=True)
    current_step_id: Optional[int] = Field(default=None, foreign_key="pipeline_steps.id")
    name: str = Field(nullable=False, max_length=200)
    nisn: Optional[str] = Field(default=None, max_length=50)  # national student number
    birthdate: Optional[str] = None
    parent_phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ApplicantHistory(SQLModel, table=True):
    __tablename__ = "applicant_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    applicant_id: int = Field(foreign_key="applicants.id", index=True)
    from_step_id: Optional[int] = None
    to_step_id: int
    by_user_id: Optional[uuid_pkg.UUID] = None
    note: Optional[str] = None
    moved_at: datetime = Field(default_factory=datetime.utcnow)
