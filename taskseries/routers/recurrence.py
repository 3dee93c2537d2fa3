"""Recurring series router."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional, Dict, Any
from dataclasses import asdict

from sqlmodel import Session

from taskseries.db.config import get_session
from taskseries.schemas.recurrence import (
    RecurrenceConfig,
    RecurrenceSummary,
    EditScope,
    OccurrencePreviewRequest,
)
from taskseries.schemas.task import (
    SeriesCreate,
    SeriesResponse,
    TaskUpdate,
    TaskResponse,
    GenerateRequest,
    RecurrenceRuleResponse,
    RecurrenceInstanceResponse,
    RecurrenceInfoResponse,
    ScopePreviewResponse,
)
from taskseries.services.errors import (
    RecurrenceError,
    RecurrenceValidationError,
    NotFoundError,
    NotRecurringError,
    ConflictError,
)
from taskseries.services.occurrence_expander import next_occurrences
from taskseries.services.recurrence_summary import summarize
from taskseries.services.recurring_task_service import RecurringTaskService
from taskseries.services.rrule_codec import generate_rrule

router = APIRouter(tags=["Recurrence"])  # No prefix since main.py adds /api prefix

ERROR_STATUS = {
    RecurrenceValidationError: status.HTTP_400_BAD_REQUEST,
    NotRecurringError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def get_recurring_service(session: Session = Depends(get_session)) -> RecurringTaskService:
    """Dependency for getting RecurringTaskService instance."""
    return RecurringTaskService(session)


def to_http_error(error: RecurrenceError) -> HTTPException:
    """Map a recurrence error to an HTTP error carrying its payload."""
    status_code = ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=error.to_dict())


@router.post("/recurring-tasks", response_model=SeriesResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_task(
    payload: SeriesCreate,
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Create a master task, its recurrence rule and the first batch of instances."""
    try:
        result = service.create_series(
            payload.task,
            payload.recurrence,
            tag_ids=payload.tag_ids,
            assignee_ids=payload.assignee_ids
        )
    except RecurrenceError as e:
        raise to_http_error(e)

    return SeriesResponse(
        master_task=TaskResponse.model_validate(result.master_task),
        rule=RecurrenceRuleResponse.model_validate(result.rule),
        instances=[TaskResponse.model_validate(t) for t in result.instances]
    )


@router.get("/recurring-tasks", response_model=Dict[str, Any])
async def list_recurring_tasks(
    plan_id: Optional[str] = Query(None, description="Only series of this plan"),
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """List the master tasks of all recurring series."""
    tasks = [TaskResponse.model_validate(t) for t in service.get_recurring_tasks(plan_id)]
    return {
        "tasks": tasks,
        "count": len(tasks)
    }


@router.get("/tasks/{task_id}/recurrence", response_model=RecurrenceInfoResponse)
async def get_recurrence_info(
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Describe where a task sits in its series."""
    try:
        return RecurrenceInfoResponse(**asdict(service.get_recurrence_info(task_id)))
    except RecurrenceError as e:
        raise to_http_error(e)


@router.get("/tasks/{task_id}/recurrence/preview", response_model=ScopePreviewResponse)
async def preview_scope(
    task_id: int,
    scope: EditScope = Query(..., description="this, future or all"),
    action: str = Query("update", pattern=r"^(update|delete)$"),
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Show which tasks a scoped edit or delete would touch."""
    try:
        preview = service.preview_scope(task_id, scope, for_delete=action == "delete")
    except RecurrenceError as e:
        raise to_http_error(e)
    return ScopePreviewResponse(**asdict(preview))


@router.patch("/tasks/{task_id}/recurrence", response_model=Dict[str, Any])
async def update_series(
    task_id: int,
    updates: TaskUpdate,
    scope: EditScope = Query(..., description="this, future or all"),
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Update a task and, depending on scope, the rest of its series."""
    try:
        tasks = service.update_series(task_id, updates, scope)
    except RecurrenceError as e:
        raise to_http_error(e)

    return {
        "scope": scope.value,
        "tasks": [TaskResponse.model_validate(t) for t in tasks],
        "count": len(tasks)
    }


@router.delete("/tasks/{task_id}/recurrence", response_model=Dict[str, Any])
async def delete_series(
    task_id: int,
    scope: EditScope = Query(..., description="this, future or all"),
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Delete a task and, depending on scope, the rest of its series."""
    try:
        deleted = service.delete_series(task_id, scope)
    except RecurrenceError as e:
        raise to_http_error(e)

    return {
        "scope": scope.value,
        "deleted_task_ids": deleted,
        "count": len(deleted)
    }


@router.put("/tasks/{task_id}/recurrence/pattern", response_model=RecurrenceRuleResponse)
async def update_pattern(
    task_id: int,
    config: RecurrenceConfig,
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Replace the recurrence pattern of a series."""
    try:
        return RecurrenceRuleResponse.model_validate(service.update_pattern(task_id, config))
    except RecurrenceError as e:
        raise to_http_error(e)


@router.post("/tasks/{task_id}/recurrence/pause", response_model=RecurrenceRuleResponse)
async def pause_series(
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Stop generating instances for a series."""
    try:
        return RecurrenceRuleResponse.model_validate(service.pause_series(task_id))
    except RecurrenceError as e:
        raise to_http_error(e)


@router.post("/tasks/{task_id}/recurrence/resume", response_model=RecurrenceRuleResponse)
async def resume_series(
    task_id: int,
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Resume generating instances for a series."""
    try:
        return RecurrenceRuleResponse.model_validate(service.resume_series(task_id))
    except RecurrenceError as e:
        raise to_http_error(e)


@router.post("/recurrence-rules/{rule_id}/generate", response_model=List[TaskResponse])
async def generate_instances(
    rule_id: int,
    payload: Optional[GenerateRequest] = None,
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """Materialize further occurrences of a rule."""
    payload = payload or GenerateRequest()
    try:
        tasks = service.generate_instances(rule_id, from_date=payload.from_date, count=payload.count)
    except RecurrenceError as e:
        raise to_http_error(e)
    return [TaskResponse.model_validate(t) for t in tasks]


@router.get("/recurrence-rules/{rule_id}/instances", response_model=List[RecurrenceInstanceResponse])
async def list_instances(
    rule_id: int,
    include_deleted: bool = Query(False, description="Include deleted occurrences"),
    service: RecurringTaskService = Depends(get_recurring_service),
):
    """List the occurrences of a rule ordered by date."""
    try:
        instances = service.list_instances(rule_id, include_deleted=include_deleted)
    except RecurrenceError as e:
        raise to_http_error(e)
    return [RecurrenceInstanceResponse.model_validate(i) for i in instances]


@router.post("/recurrence/summary", response_model=RecurrenceSummary)
async def summarize_recurrence(config: RecurrenceConfig):
    """Describe a recurrence configuration in plain English."""
    return summarize(config)


@router.post("/recurrence/occurrences", response_model=Dict[str, Any])
async def preview_occurrences(payload: OccurrencePreviewRequest):
    """Preview the dates a configuration would produce, without saving anything."""
    try:
        rrule = generate_rrule(payload.config, payload.start_date)
        dates = next_occurrences(rrule, payload.start_date, payload.count)
    except RecurrenceError as e:
        raise to_http_error(e)

    return {
        "rrule": rrule,
        "dates": dates,
        "summary": summarize(payload.config)
    }
