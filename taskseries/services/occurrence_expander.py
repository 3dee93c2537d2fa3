"""
Occurrence expansion service.

Expands rule text into concrete calendar dates. Uses python-dateutil for
RRULE parsing and iteration. All functions are pure: identical inputs
always give identical output, so instance generation can be retried safely.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Union

from dateutil.rrule import rrulestr, rrulebase

from taskseries.config import EXPANSION_HORIZON_DAYS
from taskseries.services.errors import RecurrenceValidationError
from taskseries.services.rrule_codec import rrule_anchor, rule_period_days

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _midnight(value: DateLike) -> datetime:
    return datetime.combine(_as_date(value), time.min)


def load_rule(rrule: str) -> rrulebase:
    """
    Parse rule text into a dateutil rrule object.

    Args:
        rrule: DTSTART and RRULE lines as written by the rule codec

    Returns:
        dateutil rrule object

    Raises:
        RecurrenceValidationError: If the text is not a usable rule
    """
    if not rrule or not rrule.strip():
        raise RecurrenceValidationError("Recurrence rule is empty")

    # Without an anchor dateutil would fall back to "now"
    if rrule_anchor(rrule) is None:
        raise RecurrenceValidationError("Recurrence rule has no DTSTART anchor", details={"rrule": rrule})

    try:
        return rrulestr(rrule)
    except (ValueError, TypeError) as e:
        raise RecurrenceValidationError(f"Invalid recurrence rule: {e}", details={"rrule": rrule})


def next_occurrences(
    rrule: str,
    from_date: DateLike,
    max_count: int,
    exclude_dates: Optional[Iterable[DateLike]] = None,
    horizon_days: int = EXPANSION_HORIZON_DAYS,
) -> List[date]:
    """
    Generate up to max_count occurrence dates on or after from_date.

    Args:
        rrule: Rule text
        from_date: First date to consider (inclusive)
        max_count: Maximum number of dates to return
        exclude_dates: Dates that must never be returned
        horizon_days: Slack in days beyond the span max_count periods of the rule need

    Returns:
        Strictly ascending list of dates, also bounded by the rule's COUNT/UNTIL
    """
    rule = load_rule(rrule)
    if max_count <= 0:
        return []

    start = _midnight(from_date)
    excluded = {_as_date(d) for d in exclude_dates or ()}

    # Sparse rules (every 10 years) need room for every period they may walk past
    span = rule_period_days(rrule) * (max_count + len(excluded))
    horizon_days = min(span + horizon_days, (datetime.max - start).days)
    horizon = start + timedelta(days=horizon_days)

    occurrences: List[date] = []
    for occurrence in rule.xafter(start, inc=True):
        if occurrence > horizon:
            break
        day = occurrence.date()
        if day in excluded:
            continue
        occurrences.append(day)
        if len(occurrences) >= max_count:
            break

    return occurrences


def next_occurrence(
    rrule: str,
    after_date: DateLike,
    exclude_dates: Optional[Iterable[DateLike]] = None,
) -> Optional[date]:
    """
    Get the next single occurrence on or after after_date.

    Returns:
        The date, or None when the rule is exhausted
    """
    occurrences = next_occurrences(rrule, after_date, 1, exclude_dates)
    return occurrences[0] if occurrences else None


def is_valid_occurrence(rrule: str, candidate: DateLike) -> bool:
    """Check whether the rule itself produces candidate."""
    rule = load_rule(rrule)
    day = _as_date(candidate)
    occurrence = rule.after(_midnight(day), inc=True)
    return occurrence is not None and occurrence.date() == day
