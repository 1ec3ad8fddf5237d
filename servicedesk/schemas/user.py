# servicedesk/schemas/user.py
"""
Desk staff accounts as seen through the API. Login goes by username; the
email only exists because fastapi-users keys its base schemas on it.
"""
import uuid
from datetime import datetime
from typing import Optional

from fastapi_users import schemas

from ..core.constants import UserRole


class UserRead(schemas.BaseUser[uuid.UUID]):
    username: str
    role: str
    disabled: bool
    created_at: Optional[datetime] = None


class UserCreate(schemas.BaseUserCreate):
    """New desk agents start as CustomerService unless a Supervisor says otherwise."""

    username: str
    email: str
    password: str
    role: UserRole = UserRole.CUSTOMER_SERVICE


class UserUpdate(schemas.BaseUserUpdate):
    # Disabled agents keep their history but can no longer log in
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    disabled: Optional[bool] = None
