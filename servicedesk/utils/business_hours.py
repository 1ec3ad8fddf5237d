# servicedesk/utils/business_hours.py
from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..core.errors import ValidationError


def parse_clock(value: str) -> time:
    """'08:30' -> time(8, 30)"""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except ValueError as e:
        raise ValidationError(f"Invalid clock value {value!r}, expected HH:MM") from e


def local_now(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Converts `now` (UTC, naive or aware) to the business timezone."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name))


def is_open(tz_name: str, opens: str, closes: str, now: Optional[datetime] = None) -> bool:
    """
    True when the local time falls in [opens, closes).
    A window that wraps midnight (e.g. 22:00-06:00) is supported.
    """
    current = local_now(tz_name, now).time()
    start, end = parse_clock(opens), parse_clock(closes)
    if start <= end:
        return start <= current < end
    return current >= start or current < end
