"""
Recurring Task Service

Owns the master task / recurrence rule / instance model of a recurring
series: creates a series, materializes more instances, and resolves scoped
edits and deletes ("this", "future", "all") across the series.

Every public mutating operation is one database transaction: it commits on
success and rolls back completely on any error.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

import pytz
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from taskseries.models.recurrence_instance import RecurrenceInstance
from taskseries.models.recurrence_rule import RecurrenceRule
from taskseries.models.task import Task
from taskseries.schemas.recurrence import RecurrenceConfig, EditScope, EndType
from taskseries.services.errors import (
    RecurrenceError,
    RecurrenceValidationError,
    NotFoundError,
    NotRecurringError,
    ConflictError,
)
from taskseries.services.occurrence_expander import next_occurrences, is_valid_occurrence
from taskseries.services.recurrence_validator import RecurrenceValidator
from taskseries.services.rrule_codec import (
    apply_config,
    ensure_valid_config,
    new_rule,
    rrule_anchor,
    rule_to_config,
)
from taskseries.services.task_service import TaskService
from taskseries.utils.logger import get_logger

logger = get_logger(__name__)

DUPLICATE_OCCURRENCE_CONSTRAINT = "uq_instance_rule_date"

SCOPE_TEXT = {
    EditScope.THIS: ("Only this task", "Changes will only affect this single occurrence"),
    EditScope.FUTURE: ("This and future tasks", "Changes will affect this and all future occurrences"),
    EditScope.ALL: ("All tasks in series", "Changes will affect all occurrences, past and future"),
}


def today_in(timezone: str) -> date:
    """Current calendar date in an IANA timezone."""
    return datetime.now(pytz.timezone(timezone)).date()


def is_duplicate_occurrence(error: IntegrityError) -> bool:
    """True when error is a violation of the one-instance-per-rule-and-date constraint."""
    message = str(error.orig)
    # PostgreSQL names the constraint, SQLite names its columns
    return DUPLICATE_OCCURRENCE_CONSTRAINT in message or (
        "recurrence_instance.rule_id" in message and "recurrence_instance.original_date" in message
    )


@dataclass
class SeriesResult:
    master_task: Task
    rule: RecurrenceRule
    instances: List[Task]


@dataclass
class RecurrenceInfo:
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


@dataclass
class ScopePreview:
    scope: EditScope
    label: str
    description: str
    affected_task_ids: List[int] = field(default_factory=list)


@dataclass
class _SeriesTarget:
    """A task resolved to its place in a series."""
    task: Task
    master: Task
    rule: RecurrenceRule
    instance: Optional[RecurrenceInstance]


class RecurringTaskService:
    """Service to handle the lifecycle of recurring task series."""

    def __init__(self, session: Session, today_fn: Optional[Callable[[str], date]] = None):
        """
        Initialize the recurring task service.

        Args:
            session: Database session; the service commits and rolls back on it
            today_fn: Returns "today" for a timezone name (defaults to the wall clock)
        """
        self.session = session
        self.tasks = TaskService(session)
        self.today_fn = today_fn or today_in

    # ------------------------------------------------------------------
    # Transactions and lookups
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str, **context):
        log = logger.bind(operation=operation, **context)
        try:
            yield
            self.session.commit()
        except RecurrenceError as e:
            self.session.rollback()
            log.warning("Operation rolled back", code=e.code, error=e.message)
            raise
        except IntegrityError as e:
            self.session.rollback()
            if not is_duplicate_occurrence(e):
                log.exception("Operation violated a database constraint", error=str(e.orig))
                raise
            log.error("Operation hit the duplicate occurrence constraint", error=str(e.orig))
            raise ConflictError(
                f"{operation} conflicted with a concurrent change",
                details={"operation": operation, **context}
            ) from e
        except Exception:
            self.session.rollback()
            log.exception("Operation failed")
            raise

    def _today(self, timezone: str) -> date:
        return self.today_fn(timezone)

    def _get_task(self, task_id: int) -> Task:
        task = self.tasks.get_by_id(task_id)
        if not task:
            raise NotFoundError(f"Task {task_id} not found", details={"task_id": task_id})
        return task

    def _get_rule(self, rule_id: int) -> RecurrenceRule:
        rule = self.session.get(RecurrenceRule, rule_id)
        if not rule:
            raise NotFoundError(f"Recurrence rule {rule_id} not found", details={"rule_id": rule_id})
        return rule

    def _rule_for_master(self, master_id: int) -> Optional[RecurrenceRule]:
        statement = select(RecurrenceRule).where(RecurrenceRule.task_id == master_id)
        return self.session.exec(statement).first()

    def _instance_for_task(self, task_id: int) -> Optional[RecurrenceInstance]:
        statement = select(RecurrenceInstance).where(RecurrenceInstance.task_id == task_id)
        return self.session.exec(statement).first()

    def _instances(self, rule_id: int, include_deleted: bool = False) -> List[RecurrenceInstance]:
        statement = select(RecurrenceInstance).where(RecurrenceInstance.rule_id == rule_id)
        if not include_deleted:
            statement = statement.where(RecurrenceInstance.is_deleted == False)  # noqa: E712
        statement = statement.order_by(RecurrenceInstance.original_date.asc())
        return list(self.session.exec(statement).all())

    def _excluded_dates(self, rule_id: int) -> set:
        """Dates already materialized, detached or deleted for a rule, read fresh every time."""
        statement = select(RecurrenceInstance.original_date).where(RecurrenceInstance.rule_id == rule_id)
        return set(self.session.exec(statement).all())

    def _resolve(self, task_id: int) -> _SeriesTarget:
        task = self._get_task(task_id)

        if task.is_recurring:
            master = task
        elif task.recurring_master_id is not None:
            master = self.tasks.get_by_id(task.recurring_master_id)
            if not master:
                raise NotFoundError(
                    f"Master task {task.recurring_master_id} not found",
                    details={"task_id": task_id, "master_task_id": task.recurring_master_id}
                )
        else:
            raise NotRecurringError(f"Task {task_id} is not recurring", details={"task_id": task_id})

        rule = self._rule_for_master(master.id)
        if not rule:
            raise NotRecurringError(
                f"Task {task_id} has no recurrence rule",
                details={"task_id": task_id, "master_task_id": master.id}
            )

        instance = None
        if task is not master:
            instance = self._instance_for_task(task.id)
            if not instance:
                raise NotFoundError(
                    f"No recurrence instance for task {task_id}",
                    details={"task_id": task_id, "rule_id": rule.id}
                )

        return _SeriesTarget(task=task, master=master, rule=rule, instance=instance)

    # ------------------------------------------------------------------
    # Scope resolution
    # ------------------------------------------------------------------

    def _scope_instances(
        self,
        target: _SeriesTarget,
        scope: EditScope,
        skip_exceptions: bool
    ) -> List[RecurrenceInstance]:
        """
        Resolve which live instances a scoped operation reaches.

        Exceptions are detached from series-wide edits, so edits pass
        skip_exceptions=True; deletes reach them too.
        """
        if scope == EditScope.THIS:
            if target.instance is None:
                raise RecurrenceValidationError(
                    "The master task is not a single occurrence; use scope 'future' or 'all'",
                    details={"task_id": target.task.id, "scope": scope.value}
                )
            return [target.instance]

        today = self._today(target.rule.timezone)
        selected = []
        for instance in self._instances(target.rule.id):
            if skip_exceptions and instance.is_exception:
                continue
            if scope == EditScope.FUTURE and instance.original_date < today:
                continue
            selected.append(instance)
        return selected

    def preview_scope(self, task_id: int, scope: Union[EditScope, str], for_delete: bool = False) -> ScopePreview:
        """
        Describe what a scoped edit or delete would touch, without changing anything.

        Args:
            task_id: Master or instance task
            scope: this, future or all
            for_delete: Preview a delete instead of an edit

        Returns:
            ScopePreview with label, description and affected task ids
        """
        scope = EditScope(scope)
        target = self._resolve(task_id)
        instances = self._scope_instances(target, scope, skip_exceptions=not for_delete)

        affected = [i.task_id for i in instances if i.task_id is not None]
        if scope != EditScope.THIS and not (for_delete and scope == EditScope.FUTURE):
            affected.insert(0, target.master.id)

        label, description = SCOPE_TEXT[scope]
        return ScopePreview(scope=scope, label=label, description=description, affected_task_ids=affected)

    # ------------------------------------------------------------------
    # Series creation and instance generation
    # ------------------------------------------------------------------

    def create_series(
        self,
        task_data: Union[BaseModel, Dict[str, Any]],
        config: RecurrenceConfig,
        tag_ids: Optional[List[str]] = None,
        assignee_ids: Optional[List[str]] = None
    ) -> SeriesResult:
        """
        Create a master task with its recurrence rule and first batch of instances.

        Args:
            task_data: Template fields of the master task (TaskCreate or dict)
            config: Recurrence configuration
            tag_ids: Tags attached to the master and copied to every instance
            assignee_ids: Assignees attached to the master and copied to every instance

        Returns:
            SeriesResult with the master task, the rule and the generated tasks
        """
        data = task_data.model_dump() if isinstance(task_data, BaseModel) else dict(task_data)

        # Validate before the first write
        ensure_valid_config(config)
        for ids in (tag_ids, assignee_ids):
            validation = RecurrenceValidator.validate_tag_limits(ids)
            if not validation["valid"]:
                raise RecurrenceValidationError("; ".join(validation["errors"]), errors=validation["errors"])

        with self._transaction("create_series", title=data.get("title")):
            master = self.tasks.create(data, is_recurring=True, recurring_master_id=None)
            if tag_ids:
                self.tasks.add_tags(master.id, tag_ids)
            if assignee_ids:
                self.tasks.add_assignees(master.id, assignee_ids)

            start_date = master.due_date or self._today(config.timezone)
            rule = new_rule(master.id, config, start_date)
            self.session.add(rule)
            self.session.flush()

            instances = self._generate(rule, master, start_date, None)

        logger.info(
            "Recurring series created",
            master_task_id=master.id,
            rule_id=rule.id,
            rrule=rule.rrule,
            instances=len(instances)
        )
        return SeriesResult(master_task=master, rule=rule, instances=instances)

    def generate_instances(
        self,
        rule_id: int,
        from_date: Optional[date] = None,
        count: Optional[int] = None
    ) -> List[Task]:
        """
        Materialize up to count further occurrences of a rule.

        Safe to call repeatedly with the same arguments: dates that already
        have an instance (scheduled, exception or deleted) are never created
        again.

        Args:
            rule_id: Recurrence rule
            from_date: First date to consider (defaults to today in the rule's timezone)
            count: Maximum new instances (defaults to the rule's generation_limit)

        Returns:
            Newly created tasks, ordered by date
        """
        with self._transaction("generate_instances", rule_id=rule_id):
            rule = self._get_rule(rule_id)
            master = self.tasks.get_by_id(rule.task_id)
            if not master:
                raise NotFoundError(
                    f"Master task {rule.task_id} not found",
                    details={"rule_id": rule_id, "master_task_id": rule.task_id}
                )
            created = self._generate(rule, master, from_date or self._today(rule.timezone), count)
        return created

    def _generate(
        self,
        rule: RecurrenceRule,
        master: Task,
        from_date: date,
        count: Optional[int]
    ) -> List[Task]:
        # A failed flush rolls the session back and expires loaded rows
        rule_id = rule.id
        if rule.is_paused:
            logger.info("Skipping generation for paused rule", rule_id=rule_id)
            return []

        limit = count if count is not None else rule.generation_limit
        excluded = self._excluded_dates(rule_id)
        dates = next_occurrences(rule.rrule, from_date, limit, excluded)

        created: List[Task] = []
        for occurrence_date in dates:
            task = self.tasks.create_from_master(master, occurrence_date)
            self.session.add(RecurrenceInstance(
                rule_id=rule_id,
                task_id=task.id,
                original_date=occurrence_date,
                is_exception=False,
                is_deleted=False
            ))
            try:
                self.session.flush()
            except IntegrityError as e:
                if not is_duplicate_occurrence(e):
                    raise
                raise ConflictError(
                    f"Occurrence {occurrence_date} of rule {rule_id} is already materialized",
                    details={"rule_id": rule_id, "original_date": occurrence_date.isoformat()}
                ) from e
            created.append(task)

        if dates:
            last = dates[-1]
            if rule.last_generated_date is None or last > rule.last_generated_date:
                rule.last_generated_date = last
            rule.updated_at = datetime.utcnow()
            self.session.add(rule)
            self.session.flush()

        logger.debug("Instances generated", rule_id=rule_id, from_date=from_date, created=len(created))
        return created

    # ------------------------------------------------------------------
    # Scoped edits and deletes
    # ------------------------------------------------------------------

    def update_series(
        self,
        task_id: int,
        updates: Union[BaseModel, Dict[str, Any]],
        scope: Union[EditScope, str]
    ) -> List[Task]:
        """
        Apply field updates across a series.

        "this" detaches the occurrence as an exception and edits only its task.
        "future" and "all" edit the master and every non-exception instance,
        "future" only those dated today or later.

        Returns:
            The updated tasks
        """
        scope = EditScope(scope)
        if isinstance(updates, BaseModel):
            updates = updates.model_dump(exclude_unset=True)

        validation = RecurrenceValidator.validate_series_updates(updates, propagates=scope != EditScope.THIS)
        if not validation["valid"]:
            raise RecurrenceValidationError(
                "; ".join(validation["errors"]),
                errors=validation["errors"],
                details={"task_id": task_id, "scope": scope.value}
            )

        with self._transaction("update_series", task_id=task_id, scope=scope.value):
            target = self._resolve(task_id)
            instances = self._scope_instances(target, scope, skip_exceptions=True)

            if scope == EditScope.THIS:
                target.instance.is_exception = True
                self.session.add(target.instance)
                tasks = [target.task]
            else:
                tasks = [target.master] + self.tasks.get_many(i.task_id for i in instances)

            for task in tasks:
                self.tasks.update_fields(task, updates)

        logger.info(
            "Series updated",
            task_id=task_id,
            scope=scope.value,
            fields=sorted(updates),
            tasks=[t.id for t in tasks]
        )
        return tasks

    def delete_series(self, task_id: int, scope: Union[EditScope, str]) -> List[int]:
        """
        Delete across a series.

        "this" tombstones the occurrence and hard-deletes its task.
        "future" does the same for every live occurrence dated today or
        later and ends the rule the day before today; the rule is kept.
        "all" removes the master, the rule, every instance and their tasks.

        Returns:
            Ids of the hard-deleted tasks
        """
        scope = EditScope(scope)

        with self._transaction("delete_series", task_id=task_id, scope=scope.value):
            target = self._resolve(task_id)

            if scope == EditScope.ALL:
                deleted = self._delete_everything(target)
            else:
                deleted = []
                for instance in self._scope_instances(target, scope, skip_exceptions=False):
                    deleted.extend(self._tombstone(instance))

                if scope == EditScope.FUTURE:
                    self._end_rule_before(target.rule, self._today(target.rule.timezone))

        logger.info("Series deleted", task_id=task_id, scope=scope.value, deleted_task_ids=deleted)
        return deleted

    def _tombstone(self, instance: RecurrenceInstance) -> List[int]:
        task_id = instance.task_id
        instance.is_deleted = True
        instance.task_id = None
        self.session.add(instance)
        self.session.flush()

        if task_id is not None and self.tasks.delete(task_id):
            return [task_id]
        return []

    def _end_rule_before(self, rule: RecurrenceRule, today: date) -> None:
        config = rule_to_config(rule)
        end_date = today - timedelta(days=1)
        if config.end_type == EndType.UNTIL and config.end_date and config.end_date <= end_date:
            return

        config.end_type = EndType.UNTIL
        config.end_date = end_date
        config.end_count = None
        apply_config(rule, config, rrule_anchor(rule.rrule) or today)
        self.session.add(rule)
        self.session.flush()

    def _delete_everything(self, target: _SeriesTarget) -> List[int]:
        deleted = []
        for instance in self._instances(target.rule.id, include_deleted=True):
            task_id = instance.task_id
            self.session.delete(instance)
            self.session.flush()
            if task_id is not None and self.tasks.delete(task_id):
                deleted.append(task_id)

        self.session.delete(target.rule)
        self.session.flush()

        master_id = target.master.id
        self.tasks.delete(master_id)
        deleted.append(master_id)
        return deleted

    # ------------------------------------------------------------------
    # Pattern changes
    # ------------------------------------------------------------------

    def update_pattern(self, task_id: int, config: RecurrenceConfig) -> RecurrenceRule:
        """
        Replace the recurrence pattern of a series.

        Already materialized instances are left as they are; later
        generate_instances calls follow the new pattern.
        """
        ensure_valid_config(config)

        with self._transaction("update_pattern", task_id=task_id):
            target = self._resolve(task_id)
            start_date = target.master.due_date or self._today(config.timezone)
            apply_config(target.rule, config, start_date)
            self.session.add(target.rule)
            self.session.flush()
            rule = target.rule

        logger.info("Recurrence pattern updated", rule_id=rule.id, rrule=rule.rrule)
        return rule

    def pause_series(self, task_id: int) -> RecurrenceRule:
        """Stop instance generation for a series."""
        return self._set_paused(task_id, True)

    def resume_series(self, task_id: int) -> RecurrenceRule:
        """Resume instance generation for a series."""
        return self._set_paused(task_id, False)

    def _set_paused(self, task_id: int, paused: bool) -> RecurrenceRule:
        with self._transaction("pause_series" if paused else "resume_series", task_id=task_id):
            target = self._resolve(task_id)
            target.rule.is_paused = paused
            target.rule.updated_at = datetime.utcnow()
            self.session.add(target.rule)
            rule = target.rule
        return rule

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_recurrence_info(self, task_id: int) -> RecurrenceInfo:
        """Describe where a task sits in its series."""
        target = self._resolve(task_id)
        instance = target.instance

        on_pattern = True
        if instance is not None and target.task.due_date is not None:
            on_pattern = is_valid_occurrence(target.rule.rrule, target.task.due_date)

        return RecurrenceInfo(
            task_id=target.task.id,
            is_recurring=target.task.is_recurring,
            is_instance=instance is not None,
            master_task_id=target.master.id,
            rule_id=target.rule.id,
            rrule=target.rule.rrule,
            frequency=target.rule.frequency,
            end_type=target.rule.end_type,
            is_paused=target.rule.is_paused,
            instance_date=instance.original_date if instance else None,
            is_exception=instance.is_exception if instance else False,
            on_pattern=on_pattern
        )

    def get_rule_for_task(self, task_id: int) -> RecurrenceRule:
        return self._resolve(task_id).rule

    def list_instances(self, rule_id: int, include_deleted: bool = False) -> List[RecurrenceInstance]:
        """Instances of a rule ordered by date."""
        self._get_rule(rule_id)
        return self._instances(rule_id, include_deleted=include_deleted)

    def get_recurring_tasks(self, plan_id: Optional[str] = None) -> List[Task]:
        """Master tasks of all recurring series, optionally for one plan."""
        return self.tasks.get_recurring_masters(plan_id)

    def is_recurring_task(self, task_id: int) -> bool:
        """True for a master task or a generated instance."""
        task = self._get_task(task_id)
        return task.is_recurring or task.recurring_master_id is not None

    def get_master_task_id(self, task_id: int) -> int:
        """The master of an instance, or the task itself."""
        task = self._get_task(task_id)
        return task.recurring_master_id or task.id
