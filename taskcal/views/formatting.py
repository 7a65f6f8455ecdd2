from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from humanize import naturaldelta

from ..ledger import InstanceStatus
from ..schemas import CalendarEvent, EventKind, TimeCategory

KIND_BADGES = {
    EventKind.RECURRING_INSTANCE: "↻",
    EventKind.SCHEDULED_DATE: "◷",
    EventKind.DUE_DATE: "⚑",
    EventKind.TIME_ENTRY: "⏱",
}
STATUS_MARKS = {
    InstanceStatus.PENDING: "[ ]",
    InstanceStatus.COMPLETED: "[x]",
    InstanceStatus.SKIPPED: "[-]",
}
CATEGORY_LABELS = {
    TimeCategory.OVERDUE: "Overdue",
    TimeCategory.TODAY: "Today",
    TimeCategory.TOMORROW: "Tomorrow",
    TimeCategory.THIS_WEEK: "This week",
    TimeCategory.THIS_MONTH: "This month",
    TimeCategory.LATER: "Later",
}


def relative_day(day: date, today: date) -> str:
    if day == today:
        return "today"
    delta = naturaldelta(timedelta(days=abs((day - today).days)))
    return f"{delta} ago" if day < today else f"in {delta}"


def event_time(event: CalendarEvent) -> str:
    if event.all_day:
        return f"{event.start:%Y-%m-%d}"
    if event.end is not None:
        return f"{event.start:%Y-%m-%d %H:%M}–{event.end:%H:%M}"
    return f"{event.start:%Y-%m-%d %H:%M}"


def format_event_line(event: CalendarEvent, today: Optional[date] = None) -> str:
    parts = [KIND_BADGES[event.kind]]
    if event.status is not None:
        parts.append(STATUS_MARKS[event.status])
    parts.append(event.title)
    parts.append(f"({event_time(event)})")
    if today is not None and event.day is not None and event.kind != EventKind.TIME_ENTRY:
        parts.append(relative_day(event.day, today))
    if event.kind == EventKind.TIME_ENTRY and event.end is not None:
        parts.append(f"tracked {naturaldelta(event.end - event.start)}")
    return " ".join(parts)


def bullet_list(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)
