# servicedesk/api/users/main.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.audit import log_action
from ...core.users import current_active_user, require_supervisor
from ...db.engine import get_session
from ...models.user import User
from ...schemas.user import UserCreate, UserRead, UserUpdate
from ...services.user_service import UserService
from ..dependencies import get_timeout

router = APIRouter()


# --- Dependency Injection ---
def get_user_service(session: AsyncSession = Depends(get_session)) -> UserService:
    return UserService(session, get_timeout())


@router.get("/auth/me", response_model=UserRead)
async def api_me(current_user: User = Depends(current_active_user)):
    return current_user


@router.get("/users", response_model=List[UserRead])
async def api_get_all_users(
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_supervisor),
):
    return await service.get_all_users()


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def api_create_user(
    user_data: UserCreate,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_supervisor),
):
    return await service.create_user(user_data)


@router.put("/users/{username}", response_model=UserRead)
async def api_update_user(
    username: str,
    user_data: UserUpdate,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_supervisor),
):
    return await service.update_user(username, user_data)


@router.delete("/users/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_user(
    username: str,
    request: Request,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(require_supervisor),
):
    if username == current_user.username:
        raise HTTPException(status_code=403, detail="You cannot delete your own account.")
    await service.delete_user(username)
    log_action("DELETE", "user", username, user=current_user, request=request)
