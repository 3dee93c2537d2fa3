"""
Recurrence Rule Codec

Converts a RecurrenceConfig to and from iCalendar RRULE text, and keeps the
structured rule columns in sync with that text.

Rule text is two lines:

    DTSTART:20250106T000000
    RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR;COUNT=6

Days of month that do not exist in a given month (the 31st in April, the
29th of February outside leap years) are skipped, as RFC 5545 prescribes.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from taskseries.config import DEFAULT_TIMEZONE, GENERATION_LIMIT
from taskseries.models.recurrence_rule import RecurrenceRule
from taskseries.schemas.recurrence import RecurrenceConfig, Frequency, EndType
from taskseries.services.errors import RecurrenceValidationError
from taskseries.services.recurrence_validator import RecurrenceValidator

logger = logging.getLogger(__name__)

# Index + 1 is the ISO weekday number (Monday = 1)
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

FREQ_CODES = {
    Frequency.DAILY: "DAILY",
    Frequency.WEEKLY: "WEEKLY",
    Frequency.MONTHLY: "MONTHLY",
    Frequency.YEARLY: "YEARLY",
}
FREQ_BY_CODE = {code: freq for freq, code in FREQ_CODES.items()}

# Upper bound of one FREQ unit in days
PERIOD_DAYS = {"DAILY": 1, "WEEKLY": 7, "MONTHLY": 31, "YEARLY": 366}

BYDAY_TOKEN = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def ensure_valid_config(config: RecurrenceConfig) -> None:
    """Raise RecurrenceValidationError when the config is malformed."""
    validation = RecurrenceValidator.validate_recurrence_config(config)
    if not validation["valid"]:
        raise RecurrenceValidationError(
            "Invalid recurrence configuration: " + "; ".join(validation["errors"]),
            errors=validation["errors"],
        )
    for warning in validation["warnings"]:
        logger.debug("Recurrence config warning: %s", warning)


def _byday_tokens(config: RecurrenceConfig) -> List[str]:
    if config.frequency == Frequency.WEEKLY and config.days_of_week:
        return [WEEKDAY_CODES[day - 1] for day in sorted(set(config.days_of_week))]

    if config.frequency in (Frequency.MONTHLY, Frequency.YEARLY) and config.week_of_month is not None:
        # e.g. "first Monday" = 1MO, "last Friday" = -1FR
        return [f"{config.week_of_month}{WEEKDAY_CODES[config.day_of_week_for_month - 1]}"]

    return []


def generate_rrule(config: RecurrenceConfig, start_date: DateLike) -> str:
    """
    Convert a RecurrenceConfig to rule text anchored at start_date.

    Args:
        config: Validated recurrence configuration
        start_date: First day the series may produce

    Returns:
        DTSTART and RRULE lines joined by a newline

    Raises:
        RecurrenceValidationError: If the configuration is malformed
    """
    ensure_valid_config(config)

    parts = [f"FREQ={FREQ_CODES[config.frequency]}", f"INTERVAL={config.interval}"]

    byday = _byday_tokens(config)
    if byday:
        parts.append("BYDAY=" + ",".join(byday))

    if config.frequency in (Frequency.MONTHLY, Frequency.YEARLY) and config.day_of_month is not None:
        parts.append(f"BYMONTHDAY={config.day_of_month}")

    if config.frequency == Frequency.YEARLY and config.month_of_year:
        parts.append(f"BYMONTH={config.month_of_year}")

    if config.end_type == EndType.COUNT:
        parts.append(f"COUNT={config.end_count}")
    elif config.end_type == EndType.UNTIL:
        # Inclusive of the whole end date
        parts.append(f"UNTIL={config.end_date:%Y%m%d}T235959")

    anchor = _as_date(start_date)
    return f"DTSTART:{anchor:%Y%m%d}T000000\nRRULE:" + ";".join(parts)


def _split_rule(rrule: str) -> Dict[str, str]:
    """Return the upper-cased key/value parts of the RRULE line."""
    if not rrule or not rrule.strip():
        raise RecurrenceValidationError("Recurrence rule is empty")

    body = None
    for line in rrule.strip().splitlines():
        line = line.strip()
        if line.upper().startswith("RRULE:"):
            body = line[len("RRULE:"):]
        elif line.upper().startswith("FREQ="):
            body = line
    if body is None:
        raise RecurrenceValidationError(f"No RRULE line in: {rrule!r}")

    params = {}
    for part in body.split(";"):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        if not sep or not value.strip():
            raise RecurrenceValidationError(f"Malformed RRULE part: {part!r}")
        params[key.strip().upper()] = value.strip().upper()
    return params


def _parse_int(params: Dict[str, str], key: str, default: Optional[int] = None) -> Optional[int]:
    if key not in params:
        return default
    raw = params[key].split(",")[0]
    try:
        return int(raw)
    except ValueError:
        raise RecurrenceValidationError(f"{key} must be an integer, got: {params[key]!r}")


def _parse_rule_date(value: str) -> date:
    try:
        return datetime.strptime(value[:8], "%Y%m%d").date()
    except ValueError:
        raise RecurrenceValidationError(f"Invalid rule date: {value!r}")


def parse_rrule(rrule: str, timezone: str = DEFAULT_TIMEZONE) -> RecurrenceConfig:
    """
    Parse rule text back to a RecurrenceConfig.

    Frequency, interval, end condition, weekly day lists and single
    relative-day tokens round-trip exactly. A rule carrying several ordinal
    BYDAY tokens keeps only the first one, and plain BYDAY days on a
    non-weekly rule are dropped; neither shape is produced by generate_rrule.

    Args:
        rrule: Rule text with or without a DTSTART line
        timezone: IANA timezone to attach to the config

    Returns:
        RecurrenceConfig

    Raises:
        RecurrenceValidationError: If the text cannot be parsed
    """
    params = _split_rule(rrule)

    frequency = FREQ_BY_CODE.get(params.get("FREQ", ""))
    if frequency is None:
        raise RecurrenceValidationError(f"Unsupported or missing FREQ in rule: {params.get('FREQ')!r}")

    config: Dict[str, Any] = {
        "frequency": frequency,
        "interval": _parse_int(params, "INTERVAL", 1),
        "end_type": EndType.NEVER,
        "timezone": timezone,
    }

    if "BYDAY" in params:
        days = []
        for token in params["BYDAY"].split(","):
            match = BYDAY_TOKEN.match(token.strip())
            if not match:
                raise RecurrenceValidationError(f"Invalid BYDAY token: {token!r}")
            ordinal, code = match.groups()
            weekday = WEEKDAY_CODES.index(code) + 1
            if ordinal is None:
                days.append(weekday)
            elif "week_of_month" not in config:
                config["week_of_month"] = int(ordinal)
                config["day_of_week_for_month"] = weekday
            else:
                logger.debug("Dropping extra BYDAY ordinal token %s", token)

        if days and frequency == Frequency.WEEKLY:
            config["days_of_week"] = days
        elif days:
            logger.warning("Ignoring BYDAY days on a %s rule: %s", frequency.value, days)

    if "BYMONTHDAY" in params:
        config["day_of_month"] = _parse_int(params, "BYMONTHDAY")

    if "BYMONTH" in params:
        config["month_of_year"] = _parse_int(params, "BYMONTH")

    if "COUNT" in params:
        config["end_type"] = EndType.COUNT
        config["end_count"] = _parse_int(params, "COUNT")
    elif "UNTIL" in params:
        config["end_type"] = EndType.UNTIL
        config["end_date"] = _parse_rule_date(params["UNTIL"])

    try:
        return RecurrenceConfig(**config)
    except ValidationError as e:
        raise RecurrenceValidationError(f"Rule does not describe a valid recurrence: {e}")


def rrule_anchor(rrule: str) -> Optional[date]:
    """Return the DTSTART date of rule text, or None when it has none."""
    for line in (rrule or "").strip().splitlines():
        line = line.strip()
        if line.upper().startswith("DTSTART"):
            # DTSTART:20250106T000000 or DTSTART;TZID=Europe/Berlin:20250106T000000
            return _parse_rule_date(line.rsplit(":", 1)[-1])
    return None


def rule_period_days(rrule: str) -> int:
    """Longest regular gap in days between periods of a rule: unit length times INTERVAL."""
    params = _split_rule(rrule)
    return PERIOD_DAYS.get(params.get("FREQ", ""), 1) * _parse_int(params, "INTERVAL", 1)


# ============================================================================
# RULE COLUMNS
# ============================================================================

def config_to_rule_fields(
    config: RecurrenceConfig,
    start_date: DateLike,
    generation_limit: Optional[int] = None
) -> Dict[str, Any]:
    """
    Convert a RecurrenceConfig to RecurrenceRule column values.

    Args:
        config: Recurrence configuration
        start_date: Anchor of the rule
        generation_limit: Instances per generation call (default from config)

    Returns:
        Dict of column name to value, rrule text included
    """
    rrule = generate_rrule(config, start_date)
    monthly_or_yearly = config.frequency in (Frequency.MONTHLY, Frequency.YEARLY)

    fields = {
        "rrule": rrule,
        "frequency": config.frequency.value,
        "interval_value": config.interval,
        "days_of_week": sorted(set(config.days_of_week)) if config.days_of_week else None,
        "day_of_month": config.day_of_month if monthly_or_yearly else None,
        "week_of_month": config.week_of_month if monthly_or_yearly else None,
        "day_of_week_for_month": config.day_of_week_for_month if monthly_or_yearly else None,
        "month_of_year": config.month_of_year,
        "end_type": config.end_type.value,
        "end_count": config.end_count if config.end_type == EndType.COUNT else None,
        "end_date": config.end_date if config.end_type == EndType.UNTIL else None,
        "timezone": config.timezone,
    }
    if generation_limit is not None:
        fields["generation_limit"] = generation_limit
    return fields


def apply_config(rule: RecurrenceRule, config: RecurrenceConfig, start_date: DateLike) -> RecurrenceRule:
    """Write the rule text and its structured mirror onto an existing rule."""
    for name, value in config_to_rule_fields(config, start_date).items():
        setattr(rule, name, value)
    rule.updated_at = datetime.utcnow()
    return rule


def new_rule(task_id: int, config: RecurrenceConfig, start_date: DateLike) -> RecurrenceRule:
    """Build an unsaved RecurrenceRule for a master task."""
    return RecurrenceRule(
        task_id=task_id,
        **config_to_rule_fields(config, start_date, generation_limit=GENERATION_LIMIT)
    )


def rule_to_config(rule: RecurrenceRule) -> RecurrenceConfig:
    """Convert the structured columns of a stored rule to a RecurrenceConfig."""
    return RecurrenceConfig(
        frequency=rule.frequency,
        interval=rule.interval_value,
        days_of_week=rule.days_of_week or None,
        day_of_month=rule.day_of_month,
        week_of_month=rule.week_of_month,
        day_of_week_for_month=rule.day_of_week_for_month,
        month_of_year=rule.month_of_year,
        end_type=rule.end_type,
        end_count=rule.end_count,
        end_date=rule.end_date,
        timezone=rule.timezone,
    )


# ============================================================================
# PRESETS
# ============================================================================

RECURRENCE_PRESETS = {
    "daily": lambda: RecurrenceConfig(frequency=Frequency.DAILY, interval=1),
    "weekdays": lambda: RecurrenceConfig(
        frequency=Frequency.WEEKLY, interval=1, days_of_week=[1, 2, 3, 4, 5]
    ),
    "weekly": lambda day: RecurrenceConfig(frequency=Frequency.WEEKLY, interval=1, days_of_week=[day]),
    "biweekly": lambda day: RecurrenceConfig(frequency=Frequency.WEEKLY, interval=2, days_of_week=[day]),
    "monthly": lambda day: RecurrenceConfig(frequency=Frequency.MONTHLY, interval=1, day_of_month=day),
    "yearly": lambda month, day: RecurrenceConfig(
        frequency=Frequency.YEARLY, interval=1, month_of_year=month, day_of_month=day
    ),
}


def default_recurrence_config(start_date: DateLike) -> RecurrenceConfig:
    """Weekly on the weekday of start_date."""
    return RECURRENCE_PRESETS["weekly"](_as_date(start_date).isoweekday())
