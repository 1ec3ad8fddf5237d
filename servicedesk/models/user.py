# servicedesk/models/user.py
"""
User model for FastAPI Users with SQLModel.
Combines FastAPI Users base fields with the service desk role.
"""

import uuid as uuid_pkg
from datetime import datetime

from sqlmodel import Field, SQLModel

from ..core.constants import UserRole


class User(SQLModel, table=True):
    """
    Staff account.

    FastAPI Users provides the required fields:
    - id: UUID (primary key)
    - email: str (unique, indexed)
    - hashed_password: str
    - is_active / is_superuser / is_verified

    Custom fields:
    - username: unique username used at login
    - role: Supervisor or CustomerService
    """

    __tablename__ = "users"

    # FastAPI Users required fields
    id: uuid_pkg.UUID = Field(default_factory=uuid_pkg.uuid4, primary_key=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False, max_length=320)
    hashed_password: str = Field(nullable=False, max_length=1024)
    is_active: bool = Field(default=True, nullable=False)
    is_superuser: bool = Field(default=False, nullable=False)
    is_verified: bool = Field(default=False, nullable=False)

    # Custom fields
    username: str = Field(index=True, unique=True, nullable=False, max_length=100)
    role: str = Field(default=UserRole.CUSTOMER_SERVICE.value, max_length=50)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def disabled(self) -> bool:
        return not self.is_active

    @property
    def is_supervisor(self) -> bool:
        return self.role == UserRole.SUPERVISOR.value
