"""Human-readable recurrence summaries for display."""
from taskseries.schemas.recurrence import RecurrenceConfig, RecurrenceSummary, Frequency, EndType

# Index + 1 is the ISO weekday number (Monday = 1)
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WEEKDAY_SHORT = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

ORDINAL_NAMES = {
    1: "first",
    2: "second",
    3: "third",
    4: "fourth",
    -1: "last",
}

SHORT_LABELS = {
    Frequency.DAILY: "Daily",
    Frequency.WEEKLY: "Weekly",
    Frequency.MONTHLY: "Monthly",
    Frequency.YEARLY: "Yearly",
}

WEEKDAYS = [1, 2, 3, 4, 5]


def ordinal_suffix(n: int) -> str:
    """Return the English ordinal suffix: 1 -> st, 12 -> th, 22 -> nd."""
    if 10 <= n % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def _every(interval: int, unit: str) -> str:
    return f"Every {unit}" if interval == 1 else f"Every {interval} {unit}s"


def _relative_day(config: RecurrenceConfig) -> str:
    ordinal = ORDINAL_NAMES.get(config.week_of_month, f"{config.week_of_month}{ordinal_suffix(config.week_of_month)}")
    return f"the {ordinal} {WEEKDAY_NAMES[config.day_of_week_for_month - 1]}"


def _weekly(config: RecurrenceConfig) -> str:
    days = sorted(set(config.days_of_week or []))

    if days == WEEKDAYS:
        return "Every weekday" if config.interval == 1 else f"Every {config.interval} weeks on weekdays"

    day_list = ", ".join(WEEKDAY_SHORT[d - 1] for d in days)
    if config.interval == 1:
        if not days:
            return "Every week"
        if len(days) == 1:
            return f"Every {WEEKDAY_NAMES[days[0] - 1]}"
        return f"Every week on {day_list}"

    if not days:
        return f"Every {config.interval} weeks"
    return f"Every {config.interval} weeks on {day_list}"


def _monthly(config: RecurrenceConfig) -> str:
    every = _every(config.interval, "month")
    if config.day_of_month:
        return f"{every} on the {config.day_of_month}{ordinal_suffix(config.day_of_month)}"
    if config.week_of_month is not None and config.day_of_week_for_month is not None:
        return f"{every} on {_relative_day(config)}"
    return every


def _yearly(config: RecurrenceConfig) -> str:
    every = _every(config.interval, "year")
    if not config.month_of_year:
        return every

    month = MONTH_NAMES[config.month_of_year - 1]
    if config.day_of_month:
        return f"{every} on {month} {config.day_of_month}{ordinal_suffix(config.day_of_month)}"
    if config.week_of_month is not None and config.day_of_week_for_month is not None:
        return f"{every} on {_relative_day(config)} of {month}"
    return f"{every} in {month}"


def _end_clause(config: RecurrenceConfig) -> str:
    if config.end_type == EndType.COUNT and config.end_count:
        return ", once" if config.end_count == 1 else f", {config.end_count} times"
    if config.end_type == EndType.UNTIL and config.end_date:
        end = config.end_date
        return f", until {MONTH_NAMES[end.month - 1][:3]} {end.day}, {end.year}"
    return ""


def summarize(config: RecurrenceConfig) -> RecurrenceSummary:
    """
    Generate a human-readable summary of a recurrence pattern.

    Args:
        config: Recurrence configuration

    Returns:
        RecurrenceSummary with a short frequency label and a long description
    """
    if config.frequency == Frequency.DAILY:
        long = _every(config.interval, "day")
    elif config.frequency == Frequency.WEEKLY:
        long = _weekly(config)
    elif config.frequency == Frequency.MONTHLY:
        long = _monthly(config)
    else:
        long = _yearly(config)

    return RecurrenceSummary(
        short=SHORT_LABELS[config.frequency],
        long=long + _end_clause(config)
    )
