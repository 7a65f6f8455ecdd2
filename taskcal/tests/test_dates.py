from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from taskcal.dates import DateParseError, calendar_date, has_time, sort_instant, with_date


@pytest.mark.parametrize(
    "value",
    [
        "2025-01-20",
        "2025-01-20T00:00:00Z",
        "2025-01-20T00:00:00+09:00",
        "2025-01-20T23:59:59.999-05:00",
        datetime(2025, 1, 20, tzinfo=ZoneInfo("Asia/Tokyo")),
        datetime(2025, 1, 20, 23, 30),
        date(2025, 1, 20),
    ],
)
def test_calendar_date_reads_the_values_own_day(value):
    assert calendar_date(value) == date(2025, 1, 20)


@pytest.mark.parametrize("value", ["", "   ", "tomorrow", "2025-13-01", 20250120])
def test_calendar_date_rejects_garbage(value):
    with pytest.raises(DateParseError):
        calendar_date(value)


def test_has_time():
    assert has_time("2025-01-20T09:00")
    assert has_time("2025-01-20 09:00")
    assert not has_time("2025-01-20")
    assert not has_time(None)


def test_with_date_keeps_time_suffix():
    assert with_date("2025-01-09T09:30:00+09:00", date(2025, 1, 10)) == "2025-01-10T09:30:00+09:00"
    assert with_date("2025-01-09", date(2025, 1, 10)) == "2025-01-10"


def test_sort_instant_orders_aware_against_naive():
    tokyo_nine = datetime(2025, 1, 20, 9, tzinfo=timezone(timedelta(hours=9)))
    assert sort_instant(tokyo_nine) == datetime(2025, 1, 20, 0)
    assert sort_instant(datetime(2025, 1, 20, 8)) == datetime(2025, 1, 20, 8)
