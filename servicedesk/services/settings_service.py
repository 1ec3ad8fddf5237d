# servicedesk/services/settings_service.py
"""
Runtime-editable desk settings stored in the `settings` table.

Keys without a stored row fall back to the environment defaults, so a fresh
install behaves exactly as its `.env` says until a Supervisor edits a value.
"""
import logging
from datetime import datetime
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings, get_settings
from ..core.errors import NotFound, ValidationError
from ..db.engine import unit_of_work
from ..models.setting import Setting
from ..utils.business_hours import is_open, parse_clock

logger = logging.getLogger(__name__)

BUSINESS_HOURS_START = "business_hours_start"
BUSINESS_HOURS_END = "business_hours_end"
BUSINESS_TIMEZONE = "business_timezone"
ENFORCE_BUSINESS_HOURS = "enforce_business_hours"
DEFAULT_SLA_WARN_MINUTES = "default_sla_warn_minutes"
QUEUE_REFRESH_INTERVAL = "queue_refresh_interval"

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def env_defaults(settings: Settings) -> Dict[str, str]:
    return {
        BUSINESS_HOURS_START: settings.business_open,
        BUSINESS_HOURS_END: settings.business_close,
        BUSINESS_TIMEZONE: settings.business_timezone,
        ENFORCE_BUSINESS_HOURS: "true" if settings.enforce_business_hours else "false",
        DEFAULT_SLA_WARN_MINUTES: "10",
        QUEUE_REFRESH_INTERVAL: "5",
    }


def _clean_value(key: str, value: str) -> str:
    """Checks well-known keys and returns the value as it will be stored."""
    value = value.strip()
    if key in (BUSINESS_HOURS_START, BUSINESS_HOURS_END):
        clock = parse_clock(value)
        return f"{clock.hour:02d}:{clock.minute:02d}"
    if key == BUSINESS_TIMEZONE:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(f"Unknown timezone {value!r}") from e
        return value
    if key == ENFORCE_BUSINESS_HOURS:
        lowered = value.lower()
        if lowered in TRUE_VALUES:
            return "true"
        if lowered in FALSE_VALUES:
            return "false"
        raise ValidationError(f"{key} must be true or false")
    if key in (DEFAULT_SLA_WARN_MINUTES, QUEUE_REFRESH_INTERVAL):
        if not value.isdigit() or int(value) < 1:
            raise ValidationError(f"{key} must be a positive whole number")
        return str(int(value))
    return value


class SettingsService:
    def __init__(
        self,
        session: AsyncSession,
        timeout: float = 5.0,
        defaults: Optional[Dict[str, str]] = None,
    ):
        self.session = session
        self.timeout = timeout
        self.defaults = defaults if defaults is not None else env_defaults(get_settings())

    async def _stored(self) -> Dict[str, str]:
        result = await self.session.exec(select(Setting))
        return {s.key: s.value for s in result.all()}

    async def get_all_settings(self) -> Dict[str, str]:
        """Defaults overlaid with every stored value."""
        return {**self.defaults, **await self._stored()}

    async def get_setting(self, key: str) -> str:
        setting = await self.session.get(Setting, key)
        if setting:
            return setting.value
        if key in self.defaults:
            return self.defaults[key]
        raise NotFound(f"Setting {key} not found")

    async def set_setting(self, key: str, value: str) -> str:
        await self.update_settings({key: value})
        return await self.get_setting(key)

    async def update_settings(self, settings_to_update: Dict[str, str]) -> None:
        cleaned = {}
        for key, value in settings_to_update.items():
            key = key.strip()
            if not key:
                raise ValidationError("Setting key cannot be empty")
            cleaned[key] = _clean_value(key, value)

        async with unit_of_work(self.session, self.timeout):
            now = datetime.utcnow()
            for key, value in cleaned.items():
                setting = await self.session.get(Setting, key)
                if setting:
                    setting.value = value
                    setting.updated_at = now
                else:
                    setting = Setting(key=key, value=value, updated_at=now)
                self.session.add(setting)
        logger.info(f"Settings updated: {', '.join(sorted(cleaned))}")

    async def delete_setting(self, key: str) -> None:
        """Drops the stored value; the key reverts to its default, if any."""
        setting = await self.session.get(Setting, key)
        if not setting:
            raise NotFound(f"Setting {key} not found")
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(setting)
        logger.info(f"Setting {key} reset")

    async def enforce_business_hours(self) -> bool:
        return (await self.get_setting(ENFORCE_BUSINESS_HOURS)).lower() in TRUE_VALUES

    async def desk_open_now(self, now: Optional[datetime] = None) -> bool:
        current = await self.get_all_settings()
        return is_open(
            current[BUSINESS_TIMEZONE],
            current[BUSINESS_HOURS_START],
            current[BUSINESS_HOURS_END],
            now,
        )
