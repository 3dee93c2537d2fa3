"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, ForeignKey, Text, String
from datetime import datetime, date, time
from typing import Optional


class Task(SQLModel, table=True):
    """Task entity: either a recurring master template or a schedulable task."""

    id: Optional[int] = Field(default=None, primary_key=True)
    plan_id: Optional[str] = Field(default=None, max_length=64, index=True)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default="pending", max_length=20)  # pending, in_progress, completed
    priority: str = Field(default="medium", max_length=20)  # high, medium, low
    effort: Optional[str] = Field(default=None, max_length=20)  # light, moderate, heavy
    due_date: Optional[date] = Field(default=None, index=True)
    due_time: Optional[time] = Field(default=None)
    reminder_enabled: bool = Field(default=False)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Recurrence: the master carries is_recurring, instances point at it
    is_recurring: bool = Field(default=False, index=True)
    recurring_master_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="SET NULL"), index=True, nullable=True)
    )

    @property
    def is_instance(self) -> bool:
        """True for a task generated from a recurring master."""
        return self.recurring_master_id is not None


class TaskTag(SQLModel, table=True):
    """Tag association for a task."""

    __tablename__ = "task_tag"

    task_id: int = Field(
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), primary_key=True)
    )
    tag_id: str = Field(sa_column=Column(String(64), primary_key=True))


class TaskAssignee(SQLModel, table=True):
    """Assignee association for a task."""

    __tablename__ = "task_assignee"

    task_id: int = Field(
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), primary_key=True)
    )
    user_id: str = Field(sa_column=Column(String(64), primary_key=True))
    assigned_by: Optional[str] = Field(default=None, max_length=64)
