"""Tests for occurrence expansion."""

from datetime import date, datetime

import pytest

from taskseries.schemas.recurrence import RecurrenceConfig, Frequency, EndType
from taskseries.services.errors import RecurrenceValidationError
from taskseries.services.occurrence_expander import (
    is_valid_occurrence,
    load_rule,
    next_occurrence,
    next_occurrences,
)
from taskseries.services.rrule_codec import generate_rrule

MWF = "DTSTART:20250106T000000\nRRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR;COUNT=6"


def test_weekly_mon_wed_fri_count_six():
    dates = next_occurrences(MWF, date(2025, 1, 6), 20)

    assert dates == [
        date(2025, 1, 6), date(2025, 1, 8), date(2025, 1, 10),
        date(2025, 1, 13), date(2025, 1, 15), date(2025, 1, 17),
    ]


def test_results_are_deterministic_and_strictly_ascending():
    rrule = "DTSTART:20250101T000000\nRRULE:FREQ=DAILY;INTERVAL=2"

    first = next_occurrences(rrule, date(2025, 1, 1), 15)
    second = next_occurrences(rrule, date(2025, 1, 1), 15)

    assert first == second
    assert len(first) == 15
    assert all(a < b for a, b in zip(first, first[1:]))


def test_excluded_dates_are_skipped_not_counted():
    excluded = {date(2025, 1, 8), datetime(2025, 1, 13, 9, 30)}

    dates = next_occurrences(MWF, date(2025, 1, 6), 3, exclude_dates=excluded)

    assert dates == [date(2025, 1, 6), date(2025, 1, 10), date(2025, 1, 15)]
    assert not excluded.intersection(dates)


def test_from_date_is_inclusive():
    dates = next_occurrences(MWF, date(2025, 1, 10), 2)

    assert dates == [date(2025, 1, 10), date(2025, 1, 13)]


def test_count_bound_is_counted_from_anchor():
    # Only the last two of the six occurrences lie on or after the 15th
    assert next_occurrences(MWF, date(2025, 1, 15), 10) == [date(2025, 1, 15), date(2025, 1, 17)]


def test_until_is_inclusive():
    rrule = "DTSTART:20250101T000000\nRRULE:FREQ=DAILY;INTERVAL=1;UNTIL=20250103T235959"

    assert next_occurrences(rrule, date(2025, 1, 1), 10) == [
        date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)
    ]


def test_zero_count_returns_nothing():
    assert next_occurrences(MWF, date(2025, 1, 6), 0) == []


def test_monthly_31st_skips_short_months():
    config = RecurrenceConfig(frequency=Frequency.MONTHLY, day_of_month=31)
    rrule = generate_rrule(config, date(2025, 1, 1))

    dates = next_occurrences(rrule, date(2025, 1, 1), 4)

    assert dates == [date(2025, 1, 31), date(2025, 3, 31), date(2025, 5, 31), date(2025, 7, 31)]


def test_monthly_last_friday():
    config = RecurrenceConfig(frequency=Frequency.MONTHLY, week_of_month=-1, day_of_week_for_month=5)
    rrule = generate_rrule(config, date(2025, 1, 1))

    assert next_occurrences(rrule, date(2025, 1, 1), 3) == [
        date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 28)
    ]


def test_yearly_second_tuesday_of_march():
    config = RecurrenceConfig(
        frequency=Frequency.YEARLY, month_of_year=3, week_of_month=2, day_of_week_for_month=2,
        end_type=EndType.COUNT, end_count=2
    )
    rrule = generate_rrule(config, date(2025, 1, 1))

    assert next_occurrences(rrule, date(2025, 1, 1), 5) == [date(2025, 3, 11), date(2026, 3, 10)]


def test_horizon_stops_sparse_rules():
    rrule = "DTSTART:20250101T000000\nRRULE:FREQ=YEARLY;INTERVAL=1;BYMONTHDAY=29;BYMONTH=2"

    # Five yearly periods plus four years of slack end early in 2034
    assert next_occurrences(rrule, date(2025, 1, 1), 5, horizon_days=365 * 4) == [
        date(2028, 2, 29), date(2032, 2, 29)
    ]


def test_sparse_unbounded_rule_is_not_exhausted():
    config = RecurrenceConfig(frequency=Frequency.YEARLY, interval=10)
    rrule = generate_rrule(config, date(2025, 1, 1))

    assert is_valid_occurrence(rrule, date(2035, 1, 1))
    assert next_occurrence(rrule, date(2025, 1, 2)) == date(2035, 1, 1)
    assert next_occurrences(rrule, date(2025, 1, 1), 3) == [date(2025, 1, 1), date(2035, 1, 1), date(2045, 1, 1)]


def test_sparse_rule_looks_past_excluded_dates():
    rrule = "DTSTART:20250101T000000\nRRULE:FREQ=YEARLY;INTERVAL=10"
    excluded = [date(2025, 1, 1), date(2035, 1, 1)]

    assert next_occurrences(rrule, date(2025, 1, 1), 1, exclude_dates=excluded) == [date(2045, 1, 1)]


def test_huge_horizon_is_capped():
    rrule = "DTSTART:20250101T000000\nRRULE:FREQ=YEARLY;INTERVAL=500"

    assert next_occurrences(rrule, date(2025, 1, 1), 100) == [
        date(2025, 1, 1), date(2525, 1, 1), date(3025, 1, 1), date(3525, 1, 1), date(4025, 1, 1),
        date(4525, 1, 1), date(5025, 1, 1), date(5525, 1, 1), date(6025, 1, 1), date(6525, 1, 1),
        date(7025, 1, 1), date(7525, 1, 1), date(8025, 1, 1), date(8525, 1, 1), date(9025, 1, 1),
        date(9525, 1, 1),
    ]


def test_next_occurrence():
    assert next_occurrence(MWF, date(2025, 1, 11)) == date(2025, 1, 13)
    assert next_occurrence(MWF, date(2025, 1, 18)) is None


def test_is_valid_occurrence():
    assert is_valid_occurrence(MWF, date(2025, 1, 8))
    assert not is_valid_occurrence(MWF, date(2025, 1, 7))
    assert not is_valid_occurrence(MWF, date(2025, 1, 20))


@pytest.mark.parametrize("rrule", ["", "RRULE:FREQ=DAILY", "DTSTART:20250101T000000\nRRULE:FREQ=NOPE"])
def test_load_rule_rejects_unusable_text(rrule):
    with pytest.raises(RecurrenceValidationError):
        load_rule(rrule)
