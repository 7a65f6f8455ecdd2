from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, List, Mapping, Optional

from .dates import calendar_date, parse_timestamp
from .ledger import InstanceStatus
from .recurrence import RangeError

log = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    RECURRING_INSTANCE = "recurring"
    SCHEDULED_DATE = "scheduled"
    DUE_DATE = "due"
    TIME_ENTRY = "timeentry"


class TimeCategory(str, enum.Enum):
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    LATER = "later"


@dataclass(frozen=True)
class TimeEntry:
    start: datetime
    end: Optional[datetime] = None
    description: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.end is not None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TimeEntry":
        start = data.get("start") or data.get("startTime")
        end = data.get("end") or data.get("endTime")
        return cls(
            start=start if isinstance(start, datetime) else parse_timestamp(str(start or "")),
            end=end if isinstance(end, datetime) or end is None else parse_timestamp(str(end)),
            description=data.get("description"),
        )


@dataclass
class TaskRecord:
    id: int | str
    title: str
    recurrence: Optional[str] = None
    scheduled: Optional[str] = None
    due: Optional[str] = None
    completed_instances: List[str] = field(default_factory=list)
    skipped_instances: List[str] = field(default_factory=list)
    time_entries: List[TimeEntry] = field(default_factory=list)

    @property
    def anchor_field(self) -> Optional[str]:
        if self.scheduled:
            return "scheduled"
        if self.due:
            return "due"
        return None

    @property
    def anchor_value(self) -> Optional[str]:
        return self.scheduled or self.due


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise RangeError(self.start, self.end)

    @classmethod
    def of(cls, start, end) -> "DateRange":
        return cls(calendar_date(start), calendar_date(end))

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


_OPTION_ALIASES = {
    "showScheduled": "show_scheduled",
    "showDue": "show_due",
    "showRecurring": "show_recurring",
    "showTimeEntries": "show_time_entries",
    "showCompletedInstances": "show_completed_instances",
    "showSkippedInstances": "show_skipped_instances",
}


@dataclass(frozen=True)
class CalendarOptions:
    show_scheduled: bool = True
    show_due: bool = True
    show_recurring: bool = True
    show_time_entries: bool = True
    show_completed_instances: bool = True
    show_skipped_instances: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CalendarOptions":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                log.debug("Ignoring unknown calendar option %r", key)
                continue
            values[name] = bool(value)
        return cls(**values)

    def shows_status(self, status: InstanceStatus) -> bool:
        if status == InstanceStatus.COMPLETED:
            return self.show_completed_instances
        if status == InstanceStatus.SKIPPED:
            return self.show_skipped_instances
        return True


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    task_id: int | str
    title: str
    start: datetime
    kind: EventKind
    end: Optional[datetime] = None
    all_day: bool = True
    status: Optional[InstanceStatus] = None
    time_category: Optional[TimeCategory] = None
    day: Optional[date] = None
