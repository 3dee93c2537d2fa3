"""Task schemas for recurring series."""
from pydantic import BaseModel, Field
from datetime import datetime, date, time
from typing import Optional, List

from taskseries.schemas.recurrence import RecurrenceConfig, EditScope


class TaskCreate(BaseModel):
    """Schema for the master task template of a new series."""
    plan_id: Optional[str] = Field(None, max_length=64)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: str = Field(default="pending", pattern=r"^(pending|in_progress|completed)$")
    priority: str = Field(default="medium", pattern=r"^(high|medium|low)$")
    effort: Optional[str] = Field(None, pattern=r"^(light|moderate|heavy)$")
    due_date: Optional[date] = None  # anchors the series
    due_time: Optional[time] = None
    reminder_enabled: bool = False
    sort_order: int = 0


class TaskUpdate(BaseModel):
    """Schema for updating tasks of a series."""
    plan_id: Optional[str] = Field(None, max_length=64)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[str] = Field(None, pattern=r"^(pending|in_progress|completed)$")
    priority: Optional[str] = Field(None, pattern=r"^(high|medium|low)$")
    effort: Optional[str] = Field(None, pattern=r"^(light|moderate|heavy)$")
    due_date: Optional[date] = None  # only honored with scope "this"
    due_time: Optional[time] = None
    reminder_enabled: Optional[bool] = None
    sort_order: Optional[int] = None


class SeriesCreate(BaseModel):
    """Schema for creating a recurring series."""
    task: TaskCreate
    recurrence: RecurrenceConfig
    tag_ids: Optional[List[str]] = Field(None, max_length=20)
    assignee_ids: Optional[List[str]] = Field(None, max_length=20)


class GenerateRequest(BaseModel):
    """Schema for materializing more instances of a rule."""
    from_date: Optional[date] = None
    count: Optional[int] = Field(None, ge=1, le=100)


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: int
    plan_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    effort: Optional[str] = None
    due_date: Optional[date] = None
    due_time: Optional[time] = None
    reminder_enabled: bool = False
    sort_order: int = 0
    is_recurring: bool = False
    recurring_master_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RecurrenceRuleResponse(BaseModel):
    """Schema for recurrence rule API responses."""
    id: int
    task_id: int
    rrule: str
    frequency: str
    interval_value: int
    days_of_week: Optional[List[int]] = None
    day_of_month: Optional[int] = None
    week_of_month: Optional[int] = None
    day_of_week_for_month: Optional[int] = None
    month_of_year: Optional[int] = None
    end_type: str
    end_count: Optional[int] = None
    end_date: Optional[date] = None
    timezone: str
    generation_limit: int
    last_generated_date: Optional[date] = None
    is_paused: bool

    class Config:
        from_attributes = True


class RecurrenceInstanceResponse(BaseModel):
    """Schema for recurrence instance API responses."""
    id: int
    rule_id: int
    task_id: Optional[int] = None
    original_date: date
    is_exception: bool
    is_deleted: bool

    class Config:
        from_attributes = True


class SeriesResponse(BaseModel):
    """Schema returned after creating a series."""
    master_task: TaskResponse
    rule: RecurrenceRuleResponse
    instances: List[TaskResponse]


class RecurrenceInfoResponse(BaseModel):
    """Schema describing where a task sits in its series."""
    task_id: int
    is_recurring: bool
    is_instance: bool
    master_task_id: int
    rule_id: int
    rrule: str
    frequency: str
    end_type: str
    is_paused: bool
    instance_date: Optional[date] = None
    is_exception: bool = False
    on_pattern: bool = True

    class Config:
        from_attributes = True


class ScopePreviewResponse(BaseModel):
    """Schema describing what a scoped edit or delete would touch."""
    scope: EditScope
    label: str
    description: str
    affected_task_ids: List[int]

    class Config:
        from_attributes = True
