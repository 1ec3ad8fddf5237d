# tests/test_utils.py
from datetime import datetime, timezone

import pytest

from servicedesk.core.errors import ValidationError
from servicedesk.services.customer_service import normalize_phone
from servicedesk.utils.business_hours import is_open, parse_clock
from servicedesk.utils.titles import follow_up_title, split_follow_up_title


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Printer jam", "Follow up: Printer jam"),
        ("Follow up: Printer jam", "Follow up (2): Printer jam"),
        ("Follow up (2): Printer jam", "Follow up (3): Printer jam"),
        ("FOLLOW UP: follow up: Printer jam", "Follow up (3): Printer jam"),
        ("  follow up (4) :  Printer jam ", "Follow up (5): Printer jam"),
    ],
)
def test_follow_up_title(title, expected):
    assert follow_up_title(title) == expected


def test_split_keeps_inner_text():
    assert split_follow_up_title("Follow up: Why no follow up: here?") == (1, "Why no follow up: here?")


def test_business_hours_in_timezone():
    # 01:30 UTC is 08:30 in Jakarta (UTC+7)
    now = datetime(2024, 5, 6, 1, 30, tzinfo=timezone.utc)
    assert is_open("Asia/Jakarta", "08:00", "17:00", now)
    assert not is_open("UTC", "08:00", "17:00", now)


def test_business_hours_window_over_midnight():
    late = datetime(2024, 5, 6, 23, 0)
    noon = datetime(2024, 5, 6, 12, 0)
    assert is_open("UTC", "22:00", "06:00", late)
    assert not is_open("UTC", "22:00", "06:00", noon)


def test_parse_clock_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_clock("eight")


def test_normalize_phone():
    assert normalize_phone("+62 (812) 3456-7890") == "628123456789"
    assert normalize_phone("  ") is None
    assert normalize_phone(None) is None
