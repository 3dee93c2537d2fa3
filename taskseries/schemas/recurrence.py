"""Recurrence schemas: the user-facing recurrence configuration and results."""
from pydantic import BaseModel, Field
from datetime import date
from enum import Enum
from typing import Optional, List

from taskseries.config import DEFAULT_TIMEZONE


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class EndType(str, Enum):
    NEVER = "never"
    COUNT = "count"
    UNTIL = "until"


class EditScope(str, Enum):
    """How far an edit or delete propagates across a series."""
    THIS = "this"
    FUTURE = "future"
    ALL = "all"


class RecurrenceConfig(BaseModel):
    """Recurrence configuration as entered in a form.

    Weekdays use ISO numbering: 1 = Monday ... 7 = Sunday.
    """
    frequency: Frequency
    interval: int = Field(default=1, ge=1)

    # Weekly options
    days_of_week: Optional[List[int]] = None

    # Monthly / yearly options
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    week_of_month: Optional[int] = None  # 1-4, -1 = last
    day_of_week_for_month: Optional[int] = Field(default=None, ge=1, le=7)

    # Yearly options
    month_of_year: Optional[int] = Field(default=None, ge=1, le=12)

    # End conditions
    end_type: EndType = EndType.NEVER
    end_count: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[date] = None

    timezone: str = DEFAULT_TIMEZONE


class RecurrenceSummary(BaseModel):
    """Human-readable summary of a recurrence pattern."""
    short: str  # e.g. "Weekly"
    long: str  # e.g. "Every 2 weeks on Mon, Fri"


class OccurrencePreviewRequest(BaseModel):
    """Schema for previewing the dates a configuration would produce."""
    config: RecurrenceConfig
    start_date: date
    count: int = Field(default=10, ge=1, le=100)
