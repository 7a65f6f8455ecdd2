from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from . import dates
from .dates import DateLike, DateParseError, calendar_date, format_date, with_date
from .ledger import InstanceLedger, InstanceStatus
from .recurrence import DEFAULT_HORIZON_DAYS, has_dtstart, next_after, parse_recurrence, pin_anchor
from .schemas import TaskRecord

log = logging.getLogger(__name__)


class NotRecurringError(ValueError):
    pass


@dataclass
class OccurrenceUpdate:
    target: date
    status: InstanceStatus
    ledger: InstanceLedger
    completed_instances: List[str]
    skipped_instances: List[str]
    next_pending: Optional[date]
    anchor_field: Optional[str] = None
    new_value: Optional[str] = None
    shifted: Dict[str, str] = field(default_factory=dict)
    recurrence: Optional[str] = None

    def changes(self) -> Dict[str, object]:
        """Task fields to write back, instance lists always rewritten in full."""
        values: Dict[str, object] = {
            "completed_instances": self.completed_instances,
            "skipped_instances": self.skipped_instances,
        }
        if self.anchor_field and self.new_value is not None:
            values[self.anchor_field] = self.new_value
        values.update(self.shifted)
        if self.recurrence is not None:
            values["recurrence"] = self.recurrence
        return values


def _anchor_day(task: TaskRecord) -> Optional[date]:
    value = task.anchor_value
    if not value:
        return None
    try:
        return calendar_date(value)
    except DateParseError:
        log.warning("Task %s has an unparseable %s value %r", task.id, task.anchor_field, value)
        return None


def resolve_target_date(
    task: TaskRecord,
    ledger: InstanceLedger,
    explicit_date: DateLike | None = None,
    today: date | None = None,
    tz: str | None = None,
) -> date:
    """Pick the occurrence a complete/skip action applies to.

    An explicit date always wins. Otherwise an overdue, still pending anchor
    date is the target, so catching up walks through the missed days one by
    one; in every other case the action applies to today.
    """
    if explicit_date is not None:
        return calendar_date(explicit_date)
    current = today or dates.today(tz)
    anchor = _anchor_day(task)
    if anchor is not None and anchor < current and ledger.status_of(anchor) == InstanceStatus.PENDING:
        return anchor
    return current


def _advance_anchor(task: TaskRecord, next_pending: date) -> tuple[str, str, Dict[str, str]]:
    field_name = task.anchor_field or "scheduled"
    old_value = task.anchor_value
    if not old_value:
        return field_name, format_date(next_pending), {}
    new_value = with_date(old_value, next_pending)
    shifted: Dict[str, str] = {}
    if field_name == "scheduled" and task.due:
        try:
            delta = next_pending - calendar_date(old_value)
            shifted["due"] = with_date(task.due, calendar_date(task.due) + delta)
        except DateParseError:
            log.warning("Leaving unparseable due value %r of task %s unchanged", task.due, task.id)
    return field_name, new_value, shifted


def check_mark_kind(kind: InstanceStatus) -> None:
    if kind not in (InstanceStatus.COMPLETED, InstanceStatus.SKIPPED):
        raise ValueError(f"cannot mark an occurrence as {kind!r}")


def mark_occurrence(
    task: TaskRecord,
    kind: InstanceStatus,
    explicit_date: DateLike | None = None,
    today: date | None = None,
    tz: str | None = None,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> OccurrenceUpdate:
    check_mark_kind(kind)
    if not task.recurrence:
        raise NotRecurringError(f"task {task.id} has no recurrence rule")
    rule = parse_recurrence(task.recurrence, task.anchor_value)
    ledger = InstanceLedger.from_lists(task.completed_instances, task.skipped_instances)
    target = resolve_target_date(task, ledger, explicit_date, today, tz)

    updated = ledger.copy()
    updated.mark(target, kind)
    following = next_after(rule, target, horizon_days)
    next_pending = updated.next_pending_on_or_after(rule, following, horizon_days) if following else None

    completed, skipped = updated.to_lists()
    update = OccurrenceUpdate(
        target=target,
        status=kind,
        ledger=updated,
        completed_instances=completed,
        skipped_instances=skipped,
        next_pending=next_pending,
    )
    if not has_dtstart(task.recurrence):
        update.recurrence = pin_anchor(task.recurrence, rule.anchor)
    if next_pending is None:
        log.info("Task %s has no pending occurrence after %s; leaving its dates unchanged", task.id, target)
    else:
        update.anchor_field, update.new_value, update.shifted = _advance_anchor(task, next_pending)
    log.info("Marked task %s %s on %s, next pending %s", task.id, kind.value, target, next_pending)
    return update
