# servicedesk/core/users.py
"""
FastAPI Users configuration and authentication setup.
Bearer JWT for the staff API; login uses the username field.
"""
import logging
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
    JWTStrategy,
)
from fastapi_users.db import SQLAlchemyUserDatabase
from fastapi_users.password import PasswordHelper
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db.engine import get_session
from ..models.user import User
from .config import get_settings
from .constants import UserRole

logger = logging.getLogger(__name__)

# --- Authentication Transport ---
bearer_transport = BearerTransport(tokenUrl="auth/jwt/login")


# --- JWT Strategy ---
def get_jwt_strategy() -> JWTStrategy:
    """Returns JWT strategy for token generation and validation"""
    settings = get_settings()
    return JWTStrategy(
        secret=settings.secret_key,
        lifetime_seconds=settings.access_token_lifetime_seconds,
    )


auth_backend_jwt = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)

# Argon2 by default (pwdlib), bcrypt hashes still verify
password_helper = PasswordHelper()


# --- User Manager ---
class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    """
    User manager handles user lifecycle events.
    Token secrets come from settings so tests can swap SECRET_KEY.
    """

    def __init__(self, user_db, password_helper=None):
        super().__init__(user_db, password_helper)
        secret = get_settings().secret_key
        self.reset_password_token_secret = secret
        self.verification_token_secret = secret

    async def on_after_login(self, user: User, request: Optional[Request] = None, response=None):
        logger.info(f"🔐 User logged in: {user.username}")


# --- Custom User Database Adapter (Username-based lookup) ---
class SQLAlchemyUserDatabaseByUsername(SQLAlchemyUserDatabase):
    """
    Looks users up by username instead of email, so the login form's
    'username' field (standard OAuth2 name) carries the username.
    """

    async def get_by_email(self, email: str) -> Optional[User]:
        statement = select(self.user_table).where(self.user_table.username == email)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()


# --- Dependency Injectors ---
async def get_user_db(session: AsyncSession = Depends(get_session)):
    yield SQLAlchemyUserDatabaseByUsername(session, User)


async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db, password_helper)


fastapi_users = FastAPIUsers[User, uuid.UUID](get_user_manager, [auth_backend_jwt])

current_active_user = fastapi_users.current_user(active=True)


async def user_from_token(session: AsyncSession, token: Optional[str]) -> Optional[User]:
    """
    Resolves a bearer token outside the dependency system (websockets pass
    the token as a query parameter). Returns None for a bad or inactive token.
    """
    if not token:
        return None
    manager = UserManager(SQLAlchemyUserDatabaseByUsername(session, User), password_helper)
    user = await get_jwt_strategy().read_token(token, manager)
    if user is None or not user.is_active:
        return None
    return user


# --- Role-Based Access Control ---
VALID_ROLES = [role.value for role in UserRole]


class RoleChecker:
    """
    Dependency class to check if the current user has one of the allowed roles.
    Supervisors pass every check.

    Usage:
        @router.delete("/tickets/{id}")
        async def delete(user: User = Depends(RoleChecker([UserRole.SUPERVISOR]))):
            ...
    """

    def __init__(self, allowed_roles: list[str]):
        self.allowed_roles = [UserRole(role).value for role in allowed_roles]

    def __call__(self, user: User = Depends(current_active_user)) -> User:
        if user.role == UserRole.SUPERVISOR.value or user.role in self.allowed_roles:
            return user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required role: {', '.join(self.allowed_roles)}. Your role: {user.role}",
        )


require_staff = RoleChecker([UserRole.CUSTOMER_SERVICE])
require_supervisor = RoleChecker([UserRole.SUPERVISOR])
