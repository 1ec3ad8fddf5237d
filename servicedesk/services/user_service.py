# servicedesk/services/user_service.py
from typing import List, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.constants import UserRole
from ..core.errors import NotFound, ValidationError
from ..core.users import password_helper
from ..db.engine import unit_of_work
from ..models.user import User
from ..schemas.user import UserCreate, UserUpdate


class UserService:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout

    async def get_all_users(self) -> List[User]:
        result = await self.session.exec(select(User).order_by(User.username))
        return list(result.all())

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.session.exec(select(User).where(User.username == username))
        return result.first()

    async def create_user(self, user_create: UserCreate) -> User:
        if await self.get_user_by_username(user_create.username):
            raise ValidationError("Username already exists.")

        role = UserRole(user_create.role)
        async with unit_of_work(self.session, self.timeout):
            db_user = User(
                username=user_create.username,
                email=user_create.email,
                hashed_password=password_helper.hash(user_create.password),
                role=role.value,
                is_superuser=role is UserRole.SUPERVISOR,
            )
            self.session.add(db_user)
        return db_user

    async def update_user(self, username: str, user_update: UserUpdate) -> User:
        db_user = await self.get_user_by_username(username)
        if not db_user:
            raise NotFound("User not found.")

        async with unit_of_work(self.session, self.timeout):
            # Apply only the fields that were sent
            update_data = user_update.model_dump(exclude_unset=True)

            if "disabled" in update_data:
                db_user.is_active = not update_data.pop("disabled")

            password = update_data.pop("password", None)
            if password:
                db_user.hashed_password = password_helper.hash(password)

            role = update_data.pop("role", None)
            if role is not None:
                db_user.role = UserRole(role).value
                db_user.is_superuser = db_user.role == UserRole.SUPERVISOR.value

            for key, value in update_data.items():
                if value is not None:
                    setattr(db_user, key, value)

            self.session.add(db_user)
        return db_user

    async def delete_user(self, username: str) -> None:
        db_user = await self.get_user_by_username(username)
        if not db_user:
            raise NotFound("User not found.")
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(db_user)
