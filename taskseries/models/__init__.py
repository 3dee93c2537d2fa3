"""SQLModel tables for tasks and recurring series."""

from .task import Task, TaskTag, TaskAssignee
from .recurrence_rule import RecurrenceRule
from .recurrence_instance import RecurrenceInstance

__all__ = ["Task", "TaskTag", "TaskAssignee", "RecurrenceRule", "RecurrenceInstance"]
