from __future__ import annotations

import enum
import logging
import warnings
from datetime import date, timedelta
from typing import Iterable, NamedTuple, Optional, Tuple

from .dates import DateLike, DateParseError, calendar_date, format_date
from .recurrence import DEFAULT_HORIZON_DAYS, RecurrenceRule, expand, iter_occurrences

log = logging.getLogger(__name__)


class InstanceStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class LedgerConsistencyWarning(UserWarning):
    pass


class TaskOccurrenceView(NamedTuple):
    date: date
    status: InstanceStatus


def _parse_entries(values: Iterable[DateLike] | None, label: str) -> set[date]:
    days: set[date] = set()
    for value in values or ():
        try:
            days.add(calendar_date(value))
        except DateParseError:
            log.warning("Dropping unparseable %s entry %r", label, value)
    return days


class InstanceLedger:
    """Per-task record of completed and skipped occurrence dates.

    The two sets stay disjoint: writing a date to one removes it from the
    other. Nothing here prunes history implicitly; see ``prune``.
    """

    def __init__(self, completed: Iterable[date] = (), skipped: Iterable[date] = ()) -> None:
        self.completed: set[date] = set(completed)
        self.skipped: set[date] = set(skipped) - self.completed

    @classmethod
    def from_lists(
        cls, completed: Iterable[DateLike] | None, skipped: Iterable[DateLike] | None
    ) -> "InstanceLedger":
        done = _parse_entries(completed, "completed_instances")
        skip = _parse_entries(skipped, "skipped_instances")
        overlap = done & skip
        if overlap:
            log.warning("Dates %s are both completed and skipped; keeping completed", sorted(overlap))
        return cls(done, skip)

    def to_lists(self) -> Tuple[list[str], list[str]]:
        return (
            [format_date(day) for day in sorted(self.completed)],
            [format_date(day) for day in sorted(self.skipped)],
        )

    def copy(self) -> "InstanceLedger":
        return InstanceLedger(self.completed, self.skipped)

    def status_of(self, day: date) -> InstanceStatus:
        if day in self.completed:
            return InstanceStatus.COMPLETED
        if day in self.skipped:
            return InstanceStatus.SKIPPED
        return InstanceStatus.PENDING

    def mark_completed(self, day: date) -> None:
        self.skipped.discard(day)
        self.completed.add(day)

    def mark_skipped(self, day: date) -> None:
        self.completed.discard(day)
        self.skipped.add(day)

    def clear(self, day: date) -> None:
        self.completed.discard(day)
        self.skipped.discard(day)

    def mark(self, day: date, status: InstanceStatus) -> None:
        if status == InstanceStatus.COMPLETED:
            self.mark_completed(day)
        elif status == InstanceStatus.SKIPPED:
            self.mark_skipped(day)
        else:
            self.clear(day)

    def record(self, entries: Iterable[Tuple[date, InstanceStatus]]) -> None:
        """Apply a batch of writes in order; the last write for a date wins."""
        seen: dict[date, set[InstanceStatus]] = {}
        conflicted: set[date] = set()
        for day, status in entries:
            statuses = seen.setdefault(day, set())
            statuses.add(status)
            if day not in conflicted and {InstanceStatus.COMPLETED, InstanceStatus.SKIPPED} <= statuses:
                conflicted.add(day)
                warnings.warn(
                    f"{format_date(day)} was marked both completed and skipped in one update",
                    LedgerConsistencyWarning,
                    stacklevel=2,
                )
            self.mark(day, status)

    def occurrences(self, rule: RecurrenceRule, start: date, end: date) -> list[TaskOccurrenceView]:
        return [TaskOccurrenceView(day, self.status_of(day)) for day in expand(rule, start, end)]

    def next_pending_on_or_after(
        self, rule: RecurrenceRule, from_day: date, horizon_days: int = DEFAULT_HORIZON_DAYS
    ) -> Optional[date]:
        limit = from_day + timedelta(days=horizon_days)
        for day in iter_occurrences(rule, from_day, limit):
            if self.status_of(day) == InstanceStatus.PENDING:
                return day
        return None

    def latest(self) -> Optional[date]:
        entries = self.completed | self.skipped
        return max(entries) if entries else None

    def prune(self, before: date, keep_latest: bool = True) -> int:
        """Drop entries older than ``before``; returns how many were removed."""
        latest = self.latest() if keep_latest else None
        stale_completed = {day for day in self.completed if day < before and day != latest}
        stale_skipped = {day for day in self.skipped if day < before and day != latest}
        self.completed -= stale_completed
        self.skipped -= stale_skipped
        return len(stale_completed) + len(stale_skipped)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InstanceLedger):
            return NotImplemented
        return self.completed == other.completed and self.skipped == other.skipped

    def __repr__(self) -> str:
        return f"InstanceLedger(completed={len(self.completed)}, skipped={len(self.skipped)})"
