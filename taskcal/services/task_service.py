from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import dates
from ..cache import OccurrenceCache
from ..dates import DateLike, DateParseError
from ..db import on_task_change
from ..ledger import InstanceLedger, InstanceStatus
from ..materializer import RuleErrorReporter, materialize
from ..models import Task, TaskStatus, TimeLog
from ..overdue import OccurrenceUpdate, check_mark_kind, mark_occurrence
from ..schemas import CalendarEvent, CalendarOptions, DateRange, TaskRecord, TimeEntry
from ..settings import get_settings

log = logging.getLogger(__name__)

occurrence_cache = OccurrenceCache()
rule_errors = RuleErrorReporter()


class TaskNotFoundError(LookupError):
    pass


@on_task_change
def _task_changed(task_id: int) -> None:
    occurrence_cache.invalidate(task_id)
    rule_errors.forget(task_id)


def list_tasks(session: Session, include_archived: bool = False) -> Sequence[Task]:
    stmt = select(Task).order_by(Task.scheduled.is_(None), Task.scheduled, Task.created_at)
    if not include_archived:
        stmt = stmt.where(Task.status != TaskStatus.ARCHIVED)
    return session.scalars(stmt).all()


def get_task(session: Session, task_id: int) -> Task | None:
    return session.get(Task, task_id)


def require_task(session: Session, task_id: int) -> Task:
    task = get_task(session, task_id)
    if task is None:
        raise TaskNotFoundError(f"task {task_id} not found")
    return task


def create_task(session: Session, **kwargs) -> Task:
    task = Task(**kwargs)
    session.add(task)
    session.flush()
    return task


def update_task(session: Session, task: Task, **changes: Any) -> Task:
    for key, value in changes.items():
        setattr(task, key, value)
    session.add(task)
    session.flush()
    return task


def add_time_entry(
    session: Session, task: Task, start: str, end: str | None = None, description: str | None = None
) -> TimeLog:
    entry = TimeLog(task=task, start_time=start, end_time=end, description=description)
    session.add(entry)
    session.flush()
    return entry


def _time_entry(task: Task, row: TimeLog) -> TimeEntry | None:
    try:
        return TimeEntry.from_mapping({"start": row.start_time, "end": row.end_time, "description": row.description})
    except DateParseError:
        log.warning("Skipping unparseable time entry %s of task %s", row.id, task.id)
        return None


def to_record(task: Task) -> TaskRecord:
    entries = [_time_entry(task, row) for row in task.time_entries]
    return TaskRecord(
        id=task.id,
        title=task.title,
        recurrence=task.recurrence,
        scheduled=task.scheduled,
        due=task.due,
        completed_instances=list(task.completed_instances or []),
        skipped_instances=list(task.skipped_instances or []),
        time_entries=[entry for entry in entries if entry is not None],
    )


def calendar_events(
    session: Session,
    date_range: DateRange,
    options: CalendarOptions | Mapping[str, Any] | None = None,
    today: Optional[date] = None,
) -> list[CalendarEvent]:
    settings = get_settings()
    if not isinstance(options, CalendarOptions):
        options = CalendarOptions.from_mapping(options)
    records = [to_record(task) for task in list_tasks(session)]
    return materialize(
        records,
        date_range,
        options,
        today=today or dates.today(settings.timezone),
        cache=occurrence_cache,
        reporter=rule_errors,
    )


def mark_task_occurrence(
    session: Session,
    task_id: int,
    kind: InstanceStatus,
    explicit_date: DateLike | None = None,
    today: Optional[date] = None,
) -> OccurrenceUpdate | None:
    """Complete or skip a task.

    Recurring tasks get the occurrence resolved and recorded in their ledger
    and their visible date moved to the next pending occurrence. Plain tasks
    simply change status; ``None`` is returned for them.
    """
    check_mark_kind(kind)
    settings = get_settings()
    task = require_task(session, task_id)
    if not task.recurrence:
        task.status = TaskStatus.DONE if kind == InstanceStatus.COMPLETED else TaskStatus.SKIPPED
        session.add(task)
        session.flush()
        log.info("Set status of task %s to %s", task.id, task.status.value)
        return None
    update = mark_occurrence(
        to_record(task),
        kind,
        explicit_date=explicit_date,
        today=today,
        tz=settings.timezone,
        horizon_days=settings.search_horizon_days,
    )
    update_task(session, task, **update.changes())
    return update


def prune_ledgers(session: Session, today: Optional[date] = None, retention_days: Optional[int] = None) -> int:
    """Drop ledger entries older than the retention window from every recurring task."""
    settings = get_settings()
    current = today or dates.today(settings.timezone)
    window = settings.ledger_retention_days if retention_days is None else retention_days
    cutoff = current - timedelta(days=window)
    removed = 0
    for task in session.scalars(select(Task).where(Task.recurrence.is_not(None))):
        ledger = InstanceLedger.from_lists(task.completed_instances, task.skipped_instances)
        count = ledger.prune(cutoff)
        if not count:
            continue
        completed, skipped = ledger.to_lists()
        update_task(session, task, completed_instances=completed, skipped_instances=skipped)
        removed += count
    log.info("Pruned %d ledger entries older than %s", removed, cutoff)
    return removed
