"""Recurrence Validator."""
import calendar
from typing import Dict, Any, Iterable

import pytz

from taskseries.schemas.recurrence import RecurrenceConfig, Frequency, EndType

VALID_WEEK_OF_MONTH = (1, 2, 3, 4, -1)

# Fields a series-wide update may carry
UPDATABLE_FIELDS = (
    "plan_id", "title", "description", "status", "priority", "effort",
    "due_date", "due_time", "reminder_enabled", "sort_order",
)

# Task columns that cannot be cleared
REQUIRED_FIELDS = ("title", "status", "priority", "reminder_enabled", "sort_order")


class RecurrenceValidator:
    """Validate recurrence configurations and series updates."""

    @staticmethod
    def validate_recurrence_config(config: RecurrenceConfig) -> Dict[str, Any]:
        """
        Validate the cross-field rules of a recurrence configuration.

        Args:
            config: Recurrence configuration

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }
        errors = result["errors"]
        frequency = config.frequency

        # Weekly day lists
        if config.days_of_week:
            if frequency != Frequency.WEEKLY:
                errors.append("days_of_week is only allowed for weekly recurrence")
            bad_days = [d for d in config.days_of_week if d not in range(1, 8)]
            if bad_days:
                errors.append(f"days_of_week values must be between 1 (Monday) and 7 (Sunday), got: {bad_days}")

        # Relative day in month ("last Friday") must come as a pair
        has_week = config.week_of_month is not None
        has_weekday = config.day_of_week_for_month is not None
        if has_week and config.week_of_month not in VALID_WEEK_OF_MONTH:
            errors.append(f"week_of_month must be one of 1, 2, 3, 4 or -1 (last), got: {config.week_of_month}")
        if has_week != has_weekday:
            errors.append("week_of_month and day_of_week_for_month must be given together")
        if has_week and config.day_of_month is not None:
            errors.append("day_of_month and week_of_month/day_of_week_for_month are mutually exclusive")

        if frequency in (Frequency.DAILY, Frequency.WEEKLY):
            if config.day_of_month is not None or has_week or has_weekday:
                errors.append(f"{frequency.value} recurrence does not accept day-of-month options")

        if config.month_of_year is not None and frequency != Frequency.YEARLY:
            errors.append("month_of_year is only allowed for yearly recurrence")

        if frequency == Frequency.MONTHLY and config.day_of_month is None and not (has_week and has_weekday):
            errors.append("Monthly recurrence requires day_of_month or week_of_month with day_of_week_for_month")

        if frequency == Frequency.YEARLY and config.month_of_year is None and (
            config.day_of_month is not None or has_week
        ):
            errors.append("Yearly recurrence on a given day requires month_of_year")

        # Yearly dates that never exist; 29 February only occurs in leap years
        if frequency == Frequency.YEARLY and config.month_of_year and config.day_of_month:
            max_day = calendar.monthrange(2000, config.month_of_year)[1]
            if config.day_of_month > max_day:
                errors.append(
                    f"{calendar.month_name[config.month_of_year]} never has a day {config.day_of_month}"
                )
            elif config.month_of_year == 2 and config.day_of_month == 29:
                result["warnings"].append("February 29th only occurs in leap years")

        if frequency == Frequency.MONTHLY and config.day_of_month and config.day_of_month > 28:
            result["warnings"].append(
                f"Months without a day {config.day_of_month} are skipped"
            )

        # End conditions
        if config.end_type == EndType.COUNT and not config.end_count:
            errors.append("end_count is required when end_type is 'count'")
        if config.end_type == EndType.UNTIL and not config.end_date:
            errors.append("end_date is required when end_type is 'until'")
        if config.end_type != EndType.COUNT and config.end_count:
            result["warnings"].append("end_count is ignored unless end_type is 'count'")
        if config.end_type != EndType.UNTIL and config.end_date:
            result["warnings"].append("end_date is ignored unless end_type is 'until'")

        timezone_validation = RecurrenceValidator.validate_timezone(config.timezone)
        errors.extend(timezone_validation["errors"])

        result["valid"] = not errors
        return result

    @staticmethod
    def validate_timezone(name: str) -> Dict[str, Any]:
        """
        Validate an IANA timezone name.

        Args:
            name: Timezone name such as "Europe/Berlin"

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        try:
            pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            result["valid"] = False
            result["errors"].append(f"Unknown timezone: {name}")

        return result

    @staticmethod
    def validate_series_updates(updates: Dict[str, Any], propagates: bool) -> Dict[str, Any]:
        """
        Validate the fields of a series update.

        Args:
            updates: Field name to new value
            propagates: True when the update reaches more than one task

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        if not updates:
            result["warnings"].append("No fields to update")
            return result

        unknown = sorted(set(updates) - set(UPDATABLE_FIELDS))
        if unknown:
            result["valid"] = False
            result["errors"].append(f"Fields cannot be updated: {', '.join(unknown)}")

        # Occurrence dates belong to the rule
        if propagates and "due_date" in updates:
            result["valid"] = False
            result["errors"].append(
                "due_date can only be changed for a single occurrence; use update_pattern to move the series"
            )

        cleared = sorted(name for name in REQUIRED_FIELDS if name in updates and updates[name] is None)
        if cleared:
            result["valid"] = False
            result["errors"].append(f"Fields cannot be null: {', '.join(cleared)}")

        if updates.get("title") is not None and not updates["title"].strip():
            result["valid"] = False
            result["errors"].append("title cannot be empty")

        return result

    @staticmethod
    def validate_tag_limits(tags: Iterable[str]) -> Dict[str, Any]:
        """
        Validate tag and assignee id lists.

        Args:
            tags: List of ids

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        if not tags:
            return result

        tags = list(tags)
        if len(tags) > 20:
            result["valid"] = False
            result["errors"].append(f"Maximum 20 ids allowed, got {len(tags)}")
            return result

        for i, tag in enumerate(tags):
            if not isinstance(tag, str) or not tag.strip():
                result["valid"] = False
                result["errors"].append(f"Id at index {i} must be a non-empty string")
                return result

        if len(set(tags)) != len(tags):
            result["warnings"].append("Duplicate ids are ignored")

        return result
