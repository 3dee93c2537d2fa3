"""Recurrence Rule model for SQLModel."""
from sqlmodel import SQLModel, Field
from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import Column, Integer, String, Text, ForeignKey, JSON

from taskseries.config import GENERATION_LIMIT


class RecurrenceRule(SQLModel, table=True):
    """Recurrence Rule entity defining the pattern of one recurring series.

    The rrule text and the structured columns mirror each other; both are
    written by the rule codec only.
    """

    __tablename__ = "recurrence_rule"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), unique=True, nullable=False)
    )  # master task
    rrule: str = Field(sa_column=Column(Text, nullable=False))  # DTSTART + RRULE lines

    frequency: str = Field(sa_column=Column(String(20), nullable=False))  # daily, weekly, monthly, yearly
    interval_value: int = Field(default=1)  # How often to repeat (every X units)
    days_of_week: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))  # 1-7, Monday=1
    day_of_month: Optional[int] = Field(default=None)  # 1-31
    week_of_month: Optional[int] = Field(default=None)  # 1-4, -1 = last
    day_of_week_for_month: Optional[int] = Field(default=None)  # 1-7, Monday=1
    month_of_year: Optional[int] = Field(default=None)  # 1-12
    end_type: str = Field(default="never", max_length=10)  # never, count, until
    end_count: Optional[int] = Field(default=None)  # Max occurrences
    end_date: Optional[date] = Field(default=None)  # Last allowed date
    timezone: str = Field(default="UTC", max_length=64)

    generation_limit: int = Field(default=GENERATION_LIMIT)
    last_generated_date: Optional[date] = Field(default=None, index=True)
    is_paused: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
