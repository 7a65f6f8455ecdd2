from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional

from . import dates
from .cache import OccurrenceCache
from .dates import DateParseError, calendar_date, format_date, has_time, parse_timestamp, sort_instant, start_of_day
from .ledger import InstanceLedger
from .recurrence import RecurrenceRule, RecurrenceRuleError, parse_recurrence
from .schemas import CalendarEvent, CalendarOptions, DateRange, EventKind, TaskRecord, TimeCategory

log = logging.getLogger(__name__)

THIS_WEEK_DAYS = 7
THIS_MONTH_DAYS = 30


class RuleErrorReporter:
    """Reports each broken recurrence rule once rather than on every query."""

    def __init__(self, notify: Optional[Callable[[str], None]] = None) -> None:
        self.notify = notify
        self._seen: set[tuple] = set()
        self._lock = threading.Lock()

    def report(self, task: TaskRecord, error: RecurrenceRuleError) -> None:
        key = (task.id, task.recurrence)
        with self._lock:
            if key in self._seen:
                return
            self._seen.add(key)
        message = f"Task {task.title!r} has an invalid recurrence rule ({error.kind.value}): {error}"
        log.warning("%s", message)
        if self.notify:
            self.notify(message)

    def forget(self, task_id) -> None:
        with self._lock:
            self._seen = {key for key in self._seen if key[0] != task_id}


def time_category(day: date, today: date) -> TimeCategory:
    offset = (day - today).days
    if offset < 0:
        return TimeCategory.OVERDUE
    if offset == 0:
        return TimeCategory.TODAY
    if offset == 1:
        return TimeCategory.TOMORROW
    if offset <= THIS_WEEK_DAYS:
        return TimeCategory.THIS_WEEK
    if offset <= THIS_MONTH_DAYS:
        return TimeCategory.THIS_MONTH
    return TimeCategory.LATER


def _recurring_events(
    task: TaskRecord,
    rule: RecurrenceRule,
    date_range: DateRange,
    options: CalendarOptions,
    today: date,
    cache: Optional[OccurrenceCache],
) -> List[CalendarEvent]:
    ledger = InstanceLedger.from_lists(task.completed_instances, task.skipped_instances)

    def compute():
        return ledger.occurrences(rule, date_range.start, date_range.end)

    if cache is not None:
        views = cache.get_or_compute(task.id, date_range.start, date_range.end, compute)
    else:
        views = compute()

    anchor_time = None
    if has_time(task.anchor_value):
        try:
            anchor_time = parse_timestamp(task.anchor_value).timetz()
        except DateParseError:
            log.warning("Task %s has an unparseable anchor time %r", task.id, task.anchor_value)

    events = []
    for view in views:
        if not options.shows_status(view.status):
            continue
        start = datetime.combine(view.date, anchor_time) if anchor_time else start_of_day(view.date)
        events.append(
            CalendarEvent(
                id=f"{EventKind.RECURRING_INSTANCE.value}-{task.id}-{format_date(view.date)}",
                task_id=task.id,
                title=task.title,
                start=start,
                kind=EventKind.RECURRING_INSTANCE,
                all_day=anchor_time is None,
                status=view.status,
                time_category=time_category(view.date, today),
                day=view.date,
            )
        )
    return events


def _dated_event(
    task: TaskRecord, kind: EventKind, value: str, date_range: DateRange, today: date
) -> Optional[CalendarEvent]:
    try:
        day = calendar_date(value)
        start = parse_timestamp(value) if has_time(value) else start_of_day(day)
    except DateParseError:
        log.warning("Task %s has an unparseable %s date %r", task.id, kind.value, value)
        return None
    if day not in date_range:
        return None
    return CalendarEvent(
        id=f"{kind.value}-{task.id}",
        task_id=task.id,
        title=task.title,
        start=start,
        kind=kind,
        all_day=not has_time(value),
        time_category=time_category(day, today),
        day=day,
    )


def _time_entry_events(task: TaskRecord, date_range: DateRange) -> List[CalendarEvent]:
    events = []
    for index, entry in enumerate(task.time_entries):
        if not entry.closed:
            continue
        first, last = calendar_date(entry.start), calendar_date(entry.end)
        if last < date_range.start or first > date_range.end:
            continue
        events.append(
            CalendarEvent(
                id=f"{EventKind.TIME_ENTRY.value}-{task.id}-{index}",
                task_id=task.id,
                title=task.title,
                start=entry.start,
                end=entry.end,
                kind=EventKind.TIME_ENTRY,
                all_day=False,
                day=first,
            )
        )
    return events


def task_events(
    task: TaskRecord,
    date_range: DateRange,
    options: CalendarOptions,
    today: date,
    cache: Optional[OccurrenceCache] = None,
    reporter: Optional[RuleErrorReporter] = None,
) -> List[CalendarEvent]:
    rule = None
    if task.recurrence:
        try:
            rule = parse_recurrence(task.recurrence, task.anchor_value)
        except RecurrenceRuleError as exc:
            (reporter or RuleErrorReporter()).report(task, exc)

    events: List[CalendarEvent] = []
    if rule is not None:
        if options.show_recurring:
            events.extend(_recurring_events(task, rule, date_range, options, today, cache))
    else:
        if options.show_scheduled and task.scheduled:
            event = _dated_event(task, EventKind.SCHEDULED_DATE, task.scheduled, date_range, today)
            if event:
                events.append(event)
        if options.show_due and task.due:
            event = _dated_event(task, EventKind.DUE_DATE, task.due, date_range, today)
            if event:
                events.append(event)
    if options.show_time_entries:
        events.extend(_time_entry_events(task, date_range))
    return events


def materialize(
    tasks: Iterable[TaskRecord],
    date_range: DateRange,
    options: Optional[CalendarOptions] = None,
    today: Optional[date] = None,
    cache: Optional[OccurrenceCache] = None,
    reporter: Optional[RuleErrorReporter] = None,
    tz: Optional[str] = None,
) -> List[CalendarEvent]:
    """Turn tasks into calendar events for one date range.

    Recurring tasks contribute one event per occurrence in range, filtered by
    the completed/skipped toggles. Plain tasks contribute their scheduled and
    due dates. Closed time entries always appear at their own timestamps. A
    task whose rule cannot be parsed is shown as a plain task.
    """
    options = options or CalendarOptions()
    current = today or dates.today(tz)
    reporter = reporter or RuleErrorReporter()
    events: List[CalendarEvent] = []
    for task in tasks:
        events.extend(task_events(task, date_range, options, current, cache, reporter))
    events.sort(key=lambda event: (sort_instant(event.start), event.title, event.id))
    return events
