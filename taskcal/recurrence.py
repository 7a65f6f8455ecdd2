from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional

from dateutil import rrule

from .dates import DateLike, DateParseError, calendar_date, start_of_day

log = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 730

WEEKDAY_CODES = {"MO": 0, "TU": 1, "WE": 2, "TH": 3, "FR": 4, "SA": 5, "SU": 6}
WEEKDAY_NAMES = {index: code for code, index in WEEKDAY_CODES.items()}

_DTSTART_RE = re.compile(r"DTSTART(?:;[^:;\n]*)*:([^;\s]+)", re.IGNORECASE)


class Frequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


_RRULE_FREQ = {
    Frequency.DAILY: rrule.DAILY,
    Frequency.WEEKLY: rrule.WEEKLY,
    Frequency.MONTHLY: rrule.MONTHLY,
    Frequency.YEARLY: rrule.YEARLY,
}


class RuleErrorKind(str, enum.Enum):
    UNSUPPORTED_FREQUENCY = "unsupported_frequency"
    MALFORMED_ANCHOR = "malformed_anchor"
    INVALID_INTERVAL = "invalid_interval"


class RecurrenceRuleError(ValueError):
    def __init__(self, kind: RuleErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class RangeError(ValueError):
    END_BEFORE_START = "end_before_start"

    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"range end {end} is before range start {start}")
        self.kind = self.END_BEFORE_START
        self.start = start
        self.end = end


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    anchor: date
    interval: int = 1
    by_weekday: frozenset = frozenset()
    until: Optional[date] = None
    count: Optional[int] = None

    def to_text(self) -> str:
        parts = [f"DTSTART:{self.anchor:%Y%m%d}", f"FREQ={self.frequency.value}"]
        if self.interval != 1:
            parts.append(f"INTERVAL={self.interval}")
        if self.by_weekday:
            parts.append("BYDAY=" + ",".join(WEEKDAY_NAMES[d] for d in sorted(self.by_weekday)))
        if self.until:
            parts.append(f"UNTIL={self.until:%Y%m%d}")
        if self.count:
            parts.append(f"COUNT={self.count}")
        return ";".join(parts)


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise RecurrenceRuleError(RuleErrorKind.INVALID_INTERVAL, f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise RecurrenceRuleError(RuleErrorKind.INVALID_INTERVAL, f"{name} must be positive, got {value}")
    return value


def _parse_weekdays(raw: str) -> frozenset:
    days = set()
    for code in raw.upper().split(","):
        code = code.strip()
        if not code:
            continue
        if code not in WEEKDAY_CODES:
            raise RecurrenceRuleError(RuleErrorKind.UNSUPPORTED_FREQUENCY, f"unsupported BYDAY value {code!r}")
        days.add(WEEKDAY_CODES[code])
    return frozenset(days)


def _parse_rule_date(name: str, raw: str) -> date:
    try:
        return calendar_date(raw)
    except DateParseError as exc:
        raise RecurrenceRuleError(RuleErrorKind.MALFORMED_ANCHOR, f"malformed {name} {raw!r}") from exc


def _components(text: str) -> dict[str, str]:
    parts: dict[str, str] = {}
    for piece in re.split(r"[;\n]", text):
        piece = piece.strip()
        if not piece:
            continue
        if piece.upper().startswith("RRULE:"):
            piece = piece[len("RRULE:"):]
        key, sep, value = piece.partition("=")
        if not sep:
            raise RecurrenceRuleError(RuleErrorKind.UNSUPPORTED_FREQUENCY, f"unrecognised rule component {piece!r}")
        parts[key.strip().upper()] = value.strip()
    return parts


def parse_recurrence(value: str | None, fallback_anchor: DateLike | None = None) -> RecurrenceRule:
    """Parse compact rule text into a validated RecurrenceRule.

    Accepts ``DTSTART:20250101;FREQ=DAILY``-style text (with or without an
    ``RRULE:`` prefix) and the shorthands ``DAILY`` and ``WEEKLY:MO,WE``. When
    the text has no DTSTART, ``fallback_anchor`` (the task's scheduled or due
    date) becomes the anchor.
    """
    if not value or not value.strip():
        raise RecurrenceRuleError(RuleErrorKind.UNSUPPORTED_FREQUENCY, "empty recurrence rule")
    text = value.strip()
    upper = text.upper()

    anchor_raw: Optional[str] = None
    match = _DTSTART_RE.search(text)
    if match:
        anchor_raw = match.group(1)
        text = (text[: match.start()] + ";" + text[match.end():]).strip("; \n")
        upper = text.upper()

    if upper == Frequency.DAILY.value:
        parts = {"FREQ": Frequency.DAILY.value}
    elif upper == Frequency.WEEKLY.value or upper.startswith(Frequency.WEEKLY.value + ":"):
        parts = {"FREQ": Frequency.WEEKLY.value}
        _, _, days = upper.partition(":")
        if days:
            parts["BYDAY"] = days
    else:
        parts = _components(text)

    freq_raw = parts.pop("FREQ", "").upper()
    try:
        frequency = Frequency(freq_raw)
    except ValueError as exc:
        raise RecurrenceRuleError(
            RuleErrorKind.UNSUPPORTED_FREQUENCY, f"unsupported frequency {freq_raw or '<missing>'!r}"
        ) from exc

    interval = _positive_int("INTERVAL", parts.pop("INTERVAL")) if "INTERVAL" in parts else 1
    count = _positive_int("COUNT", parts.pop("COUNT")) if "COUNT" in parts else None
    by_weekday = _parse_weekdays(parts.pop("BYDAY")) if "BYDAY" in parts else frozenset()
    until = _parse_rule_date("UNTIL", parts.pop("UNTIL")) if "UNTIL" in parts else None
    if parts:
        log.debug("Ignoring recurrence components %s in %r", sorted(parts), value)

    if anchor_raw is not None:
        anchor = _parse_rule_date("DTSTART", anchor_raw)
    elif fallback_anchor is not None:
        try:
            anchor = calendar_date(fallback_anchor)
        except DateParseError as exc:
            raise RecurrenceRuleError(RuleErrorKind.MALFORMED_ANCHOR, f"malformed anchor {fallback_anchor!r}") from exc
    else:
        raise RecurrenceRuleError(RuleErrorKind.MALFORMED_ANCHOR, "rule has no DTSTART and the task has no date")

    return RecurrenceRule(
        frequency=frequency,
        anchor=anchor,
        interval=interval,
        by_weekday=by_weekday,
        until=until,
        count=count,
    )


def has_dtstart(value: str | None) -> bool:
    return bool(value) and _DTSTART_RE.search(value) is not None


def pin_anchor(value: str, anchor: date) -> str:
    """Prefix rule text with a DTSTART so its anchor stops following the task's dates."""
    return f"DTSTART:{anchor:%Y%m%d};{value.strip()}"


def _aligned_start(rule: RecurrenceRule, first: date) -> date:
    # Daily and weekly periods have a fixed length, so the rule can restart at
    # the last period boundary before the window. COUNT needs the full history.
    if rule.count is not None or first <= rule.anchor:
        return rule.anchor
    interval = max(1, rule.interval)
    if rule.frequency == Frequency.DAILY:
        period = interval
    elif rule.frequency == Frequency.WEEKLY:
        period = 7 * interval
    else:
        return rule.anchor
    steps = (first - rule.anchor).days // period
    return rule.anchor + timedelta(days=steps * period)


def _build_rrule(rule: RecurrenceRule, dtstart: date) -> rrule.rrule:
    kwargs = {
        "dtstart": start_of_day(dtstart),
        "interval": max(1, rule.interval),
        "wkst": rrule.MO,
    }
    if rule.by_weekday:
        kwargs["byweekday"] = sorted(rule.by_weekday)
    if rule.until is not None:
        kwargs["until"] = start_of_day(rule.until)
    if rule.count is not None:
        kwargs["count"] = rule.count
    return rrule.rrule(_RRULE_FREQ[rule.frequency], **kwargs)


def iter_occurrences(rule: RecurrenceRule, start: date, end: date | None = None) -> Iterator[date]:
    """Yield occurrence dates from ``start`` (inclusive) in ascending order.

    Without ``end`` the iterator only stops when the rule itself ends, so
    callers must bound it.
    """
    first = max(rule.anchor, start)
    if end is not None and end < first:
        return
    for moment in _build_rrule(rule, _aligned_start(rule, first)):
        day = moment.date()
        if day < first:
            continue
        if end is not None and day > end:
            return
        yield day


def expand(rule: RecurrenceRule, range_start: date, range_end: date) -> list[date]:
    if range_end < range_start:
        raise RangeError(range_start, range_end)
    if range_end < rule.anchor:
        return []
    return list(iter_occurrences(rule, range_start, range_end))


def next_after(rule: RecurrenceRule, day: date, horizon_days: int = DEFAULT_HORIZON_DAYS) -> Optional[date]:
    start = day + timedelta(days=1)
    return next(iter_occurrences(rule, start, day + timedelta(days=horizon_days)), None)
