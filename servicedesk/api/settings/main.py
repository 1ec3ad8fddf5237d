# servicedesk/api/settings/main.py
"""Desk settings editable at runtime. Supervisors only."""
from typing import Dict

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.audit import log_action
from ...core.users import require_supervisor
from ...db.engine import get_session
from ...models.user import User
from ...services.settings_service import SettingsService
from ..dependencies import get_timeout
from .models import SettingRead, SettingValue

router = APIRouter()


async def get_settings_service(
    session: AsyncSession = Depends(get_session),
) -> SettingsService:
    return SettingsService(session, get_timeout())


@router.get("/settings", response_model=Dict[str, str])
async def api_get_settings(
    service: SettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_supervisor),
):
    return await service.get_all_settings()


@router.put("/settings", status_code=status.HTTP_204_NO_CONTENT)
async def api_update_settings(
    request: Request,
    settings: Dict[str, str],
    service: SettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_supervisor),
):
    await service.update_settings(settings)
    log_action("UPDATE", "settings", ",".join(sorted(settings)), user=current_user, request=request)
    return


@router.get("/settings/{key}", response_model=SettingRead)
async def api_get_setting(
    key: str,
    service: SettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_supervisor),
):
    return {"key": key, "value": await service.get_setting(key)}


@router.put("/settings/{key}", response_model=SettingRead)
async def api_put_setting(
    request: Request,
    key: str,
    body: SettingValue,
    service: SettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_supervisor),
):
    value = await service.set_setting(key, body.value)
    log_action("UPDATE", "setting", key, user=current_user, request=request)
    return {"key": key, "value": value}


@router.delete("/settings/{key}", status_code=status.HTTP_204_NO_CONTENT)
async def api_reset_setting(
    request: Request,
    key: str,
    service: SettingsService = Depends(get_settings_service),
    current_user: User = Depends(require_supervisor),
):
    await service.delete_setting(key)
    log_action("DELETE", "setting", key, user=current_user, request=request)
    return
