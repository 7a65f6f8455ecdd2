"""Calendar-day normalisation.

Everything the engine computes is keyed on plain calendar days. Values arrive
from storage as date strings, date-times with or without an offset, or
``date``/``datetime`` objects, and are reduced to a ``date`` here and nowhere
else. The calendar day is read from the fields the value itself carries:
``2025-01-20T00:00:00+09:00`` and ``2025-01-20T00:00:00Z`` are both
2025-01-20. A value is never re-projected through the host's local timezone.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

CalendarDate = date
DateLike = Union[str, date, datetime]

DATE_FORMAT = "%Y-%m-%d"


class DateParseError(ValueError):
    pass


def parse_timestamp(value: str) -> datetime:
    text = value.strip()
    if not text:
        raise DateParseError("empty date value")
    try:
        return isoparse(text)
    except (ValueError, OverflowError) as exc:
        raise DateParseError(f"unparseable date value {value!r}") from exc


def calendar_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_timestamp(value).date()
    raise DateParseError(f"unsupported date value {value!r}")


def has_time(value: str | None) -> bool:
    """True when a stored date value carries a time-of-day component."""
    if not value:
        return False
    text = value.strip()
    return len(text) > 10 and text[10] in "T "


def with_date(value: str, day: date) -> str:
    """Swap the calendar day of a stored value, keeping any time suffix."""
    text = value.strip()
    if has_time(text):
        return day.isoformat() + text[10:]
    return day.isoformat()


def format_date(day: date) -> str:
    return day.strftime(DATE_FORMAT)


def today(tz: str | None = None) -> date:
    zone = ZoneInfo(tz) if tz else timezone.utc
    return datetime.now(zone).date()


def start_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


def sort_instant(value: datetime) -> datetime:
    """Naive UTC instant used to order aware and floating timestamps together."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
