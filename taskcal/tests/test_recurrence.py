from datetime import date, datetime, timedelta, timezone

import pytest

from taskcal.dates import calendar_date
from taskcal.recurrence import (
    Frequency,
    RangeError,
    RecurrenceRule,
    RecurrenceRuleError,
    RuleErrorKind,
    expand,
    next_after,
    parse_recurrence,
)

UTC_PLUS_9 = timezone(timedelta(hours=9))


def test_parse_full_rule():
    rule = parse_recurrence("DTSTART:20250101;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE")
    assert rule.frequency == Frequency.WEEKLY
    assert rule.interval == 2
    assert rule.by_weekday == frozenset({0, 2})
    assert rule.anchor == date(2025, 1, 1)


def test_parse_weekly_shorthand_uses_fallback_anchor():
    rule = parse_recurrence("WEEKLY:MO,WE", fallback_anchor="2025-01-06")
    assert rule.frequency == Frequency.WEEKLY
    assert rule.by_weekday == frozenset({0, 2})
    assert rule.anchor == date(2025, 1, 6)


def test_parse_rrule_lines_with_parameterised_dtstart():
    rule = parse_recurrence("DTSTART;VALUE=DATE:20250103\nRRULE:FREQ=DAILY;INTERVAL=3")
    assert rule.anchor == date(2025, 1, 3)
    assert rule.interval == 3


def test_parse_dtstart_with_time_keeps_its_calendar_day():
    rule = parse_recurrence("DTSTART:20250126T233000Z;FREQ=DAILY")
    assert rule.anchor == date(2025, 1, 26)


@pytest.mark.parametrize(
    "text, kind",
    [
        ("DTSTART:20250101;FREQ=HOURLY", RuleErrorKind.UNSUPPORTED_FREQUENCY),
        ("DTSTART:20250101;INTERVAL=2", RuleErrorKind.UNSUPPORTED_FREQUENCY),
        ("DTSTART:20250101;FREQ=WEEKLY;BYDAY=XX", RuleErrorKind.UNSUPPORTED_FREQUENCY),
        ("DTSTART:20250101;FREQ=DAILY;INTERVAL=two", RuleErrorKind.INVALID_INTERVAL),
        ("DTSTART:20250101;FREQ=DAILY;INTERVAL=0", RuleErrorKind.INVALID_INTERVAL),
        ("DTSTART:notadate;FREQ=DAILY", RuleErrorKind.MALFORMED_ANCHOR),
        ("FREQ=DAILY", RuleErrorKind.MALFORMED_ANCHOR),
        ("", RuleErrorKind.UNSUPPORTED_FREQUENCY),
    ],
)
def test_parse_errors(text, kind):
    with pytest.raises(RecurrenceRuleError) as excinfo:
        parse_recurrence(text)
    assert excinfo.value.kind == kind


def test_rule_text_round_trip():
    rule = parse_recurrence("DTSTART:20250101;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=6")
    assert parse_recurrence(rule.to_text()) == rule


def test_daily_week_has_no_boundary_loss_across_timezones():
    rule = parse_recurrence("FREQ=DAILY", fallback_anchor="2025-01-20")
    tokyo = expand(
        rule,
        calendar_date(datetime(2025, 1, 20, tzinfo=UTC_PLUS_9)),
        calendar_date(datetime(2025, 1, 26, tzinfo=UTC_PLUS_9)),
    )
    utc = expand(
        rule,
        calendar_date(datetime(2025, 1, 20, tzinfo=timezone.utc)),
        calendar_date(datetime(2025, 1, 26, tzinfo=timezone.utc)),
    )
    assert tokyo == utc
    assert len(tokyo) == 7
    assert tokyo[-1] == date(2025, 1, 26)


def test_week_end_bound_at_last_millisecond_keeps_sunday():
    rule = parse_recurrence("DTSTART:20250101;FREQ=DAILY")
    days = expand(rule, calendar_date("2025-01-20T00:00:00.000Z"), calendar_date("2025-01-26T23:59:59.999Z"))
    assert [d.isoformat() for d in days] == [f"2025-01-{n}" for n in range(20, 27)]


def test_expand_is_idempotent():
    rule = parse_recurrence("DTSTART:20250101;FREQ=WEEKLY;BYDAY=TU,FR")
    first = expand(rule, date(2025, 2, 1), date(2025, 3, 31))
    assert first == expand(rule, date(2025, 2, 1), date(2025, 3, 31))
    assert first == sorted(first)


def test_weekly_sundays_in_january_2025():
    rule = parse_recurrence("DTSTART:20250101;FREQ=WEEKLY;BYDAY=SU")
    assert expand(rule, date(2025, 1, 1), date(2025, 1, 31)) == [
        date(2025, 1, 5),
        date(2025, 1, 12),
        date(2025, 1, 19),
        date(2025, 1, 26),
    ]


def test_weekly_sundays_include_month_end_sunday():
    rule = parse_recurrence("DTSTART:20250101;FREQ=WEEKLY;BYDAY=SU")
    days = expand(rule, date(2025, 8, 1), date(2025, 8, 31))
    assert len(days) == 5
    assert days[-1] == date(2025, 8, 31)


def test_biweekly_byday_groups_by_week():
    rule = parse_recurrence("DTSTART:20250101;FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE")
    assert expand(rule, date(2025, 1, 1), date(2025, 1, 31)) == [
        date(2025, 1, 1),
        date(2025, 1, 13),
        date(2025, 1, 15),
        date(2025, 1, 27),
        date(2025, 1, 29),
    ]
    assert expand(rule, date(2025, 3, 1), date(2025, 3, 31)) == [
        date(2025, 3, 10),
        date(2025, 3, 12),
        date(2025, 3, 24),
        date(2025, 3, 26),
    ]


def test_interval_alignment_from_old_anchor():
    rule = parse_recurrence("DTSTART:20200101;FREQ=DAILY;INTERVAL=3")
    assert expand(rule, date(2025, 1, 1), date(2025, 1, 10)) == [
        date(2025, 1, 1),
        date(2025, 1, 4),
        date(2025, 1, 7),
        date(2025, 1, 10),
    ]


def test_monthly_on_31st_skips_short_months():
    rule = parse_recurrence("DTSTART:20250131;FREQ=MONTHLY")
    assert expand(rule, date(2025, 1, 1), date(2025, 5, 31)) == [
        date(2025, 1, 31),
        date(2025, 3, 31),
        date(2025, 5, 31),
    ]


def test_yearly_uses_anchor_month_and_day():
    rule = parse_recurrence("DTSTART:20230315;FREQ=YEARLY")
    assert expand(rule, date(2024, 1, 1), date(2025, 12, 31)) == [date(2024, 3, 15), date(2025, 3, 15)]


def test_count_and_until_end_the_rule():
    counted = parse_recurrence("DTSTART:20250101;FREQ=DAILY;COUNT=3")
    until = parse_recurrence("DTSTART:20250101;FREQ=DAILY;UNTIL=20250105")
    assert expand(counted, date(2025, 1, 1), date(2025, 1, 31)) == [date(2025, 1, d) for d in (1, 2, 3)]
    assert expand(until, date(2025, 1, 1), date(2025, 1, 31))[-1] == date(2025, 1, 5)


def test_range_before_anchor_is_empty():
    rule = parse_recurrence("DTSTART:20250601;FREQ=DAILY")
    assert expand(rule, date(2025, 1, 1), date(2025, 5, 31)) == []


def test_range_starting_before_anchor_starts_at_anchor():
    rule = parse_recurrence("DTSTART:20250110;FREQ=DAILY")
    assert expand(rule, date(2025, 1, 1), date(2025, 1, 12)) == [date(2025, 1, d) for d in (10, 11, 12)]


def test_end_before_start_raises():
    rule = parse_recurrence("DTSTART:20250101;FREQ=DAILY")
    with pytest.raises(RangeError) as excinfo:
        expand(rule, date(2025, 1, 10), date(2025, 1, 9))
    assert excinfo.value.kind == RangeError.END_BEFORE_START


def test_non_positive_interval_is_treated_as_one():
    rule = RecurrenceRule(frequency=Frequency.DAILY, anchor=date(2025, 1, 1), interval=0)
    assert len(expand(rule, date(2025, 1, 1), date(2025, 1, 3))) == 3


def test_next_after_is_strictly_later():
    rule = parse_recurrence("DTSTART:20250106;FREQ=WEEKLY;BYDAY=MO")
    assert next_after(rule, date(2025, 1, 6)) == date(2025, 1, 13)
    assert next_after(rule, date(2025, 1, 8)) == date(2025, 1, 13)


def test_next_after_returns_none_when_rule_ended():
    rule = parse_recurrence("DTSTART:20250101;FREQ=DAILY;COUNT=1")
    assert next_after(rule, date(2025, 1, 1)) is None
