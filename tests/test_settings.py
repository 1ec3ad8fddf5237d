# tests/test_settings.py
from datetime import datetime

import pytest

from servicedesk.core.errors import NotFound, ValidationError
from servicedesk.services.settings_service import SettingsService

pytestmark = pytest.mark.asyncio

DEFAULTS = {
    "business_hours_start": "08:00",
    "business_hours_end": "17:00",
    "business_timezone": "UTC",
    "enforce_business_hours": "false",
}


@pytest.fixture
def desk_settings(session):
    return SettingsService(session, defaults=dict(DEFAULTS))


async def test_defaults_until_a_value_is_stored(desk_settings):
    assert await desk_settings.get_setting("business_hours_end") == "17:00"

    await desk_settings.set_setting("business_hours_end", "18:30")
    assert await desk_settings.get_setting("business_hours_end") == "18:30"
    assert (await desk_settings.get_all_settings())["business_hours_start"] == "08:00"

    await desk_settings.delete_setting("business_hours_end")
    assert await desk_settings.get_setting("business_hours_end") == "17:00"
    with pytest.raises(NotFound):
        await desk_settings.delete_setting("business_hours_end")


async def test_free_form_keys(desk_settings):
    with pytest.raises(NotFound):
        await desk_settings.get_setting("welcome_text")
    await desk_settings.update_settings({"welcome_text": " Hello "})
    assert await desk_settings.get_setting("welcome_text") == "Hello"


async def test_known_keys_are_checked(desk_settings):
    with pytest.raises(ValidationError):
        await desk_settings.set_setting("business_hours_start", "late")
    with pytest.raises(ValidationError):
        await desk_settings.set_setting("business_timezone", "Nowhere/Special")
    with pytest.raises(ValidationError):
        await desk_settings.set_setting("enforce_business_hours", "maybe")
    with pytest.raises(ValidationError):
        await desk_settings.set_setting("queue_refresh_interval", "0")
    # A bad value anywhere rejects the whole batch
    with pytest.raises(ValidationError):
        await desk_settings.update_settings({"business_hours_end": "16:00", "business_hours_start": "x"})
    assert await desk_settings.get_setting("business_hours_end") == "17:00"


async def test_open_check_uses_stored_hours(desk_settings):
    noon = datetime(2024, 5, 6, 12, 0)
    assert await desk_settings.desk_open_now(noon) is True

    await desk_settings.update_settings({"business_hours_start": "13:00", "business_timezone": "Asia/Jakarta"})
    # 12:00 UTC is 19:00 in Jakarta
    assert await desk_settings.desk_open_now(noon) is False
    await desk_settings.set_setting("business_hours_end", "20:00")
    assert await desk_settings.desk_open_now(noon) is True

    assert await desk_settings.enforce_business_hours() is False
    await desk_settings.set_setting("enforce_business_hours", "ON")
    assert await desk_settings.enforce_business_hours() is True
