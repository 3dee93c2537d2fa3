"""Recurrence Instance model for SQLModel."""
from sqlmodel import SQLModel, Field
from datetime import datetime, date
from typing import Optional
from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint


class RecurrenceInstance(SQLModel, table=True):
    """One materialized occurrence of a recurrence rule.

    Deleted instances stay behind as tombstones so their date is never
    generated again; task_id is cleared once the task row is removed.
    """

    __tablename__ = "recurrence_instance"
    __table_args__ = (
        UniqueConstraint("rule_id", "original_date", name="uq_instance_rule_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    rule_id: int = Field(
        sa_column=Column(Integer, ForeignKey("recurrence_rule.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    task_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("task.id", ondelete="SET NULL"), nullable=True, index=True)
    )
    original_date: date = Field(index=True)
    is_exception: bool = Field(default=False)  # detached from series-wide edits
    is_deleted: bool = Field(default=False)  # tombstone
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def state(self) -> str:
        """scheduled, exception or deleted."""
        if self.is_deleted:
            return "deleted"
        if self.is_exception:
            return "exception"
        return "scheduled"
