"""Task store used by the recurring series lifecycle."""
from sqlmodel import Session, select
from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime, date

from taskseries.models.task import Task, TaskTag, TaskAssignee

# Fields copied from a master task onto each generated instance
TEMPLATE_FIELDS = (
    "plan_id", "title", "description", "priority", "effort",
    "due_time", "reminder_enabled", "sort_order",
)

DEFAULT_STATUS = "pending"


class TaskService:
    """Service class for task rows and their tag/assignee associations.

    Writes are flushed, never committed: the caller owns the transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        data: Dict[str, Any],
        is_recurring: bool = False,
        recurring_master_id: Optional[int] = None
    ) -> Task:
        """Create a task row from a dict of task fields."""
        task = Task(
            **data,
            is_recurring=is_recurring,
            recurring_master_id=recurring_master_id,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow()
        )

        self.session.add(task)
        self.session.flush()
        self.session.refresh(task)
        return task

    def create_from_master(self, master: Task, due_date: date) -> Task:
        """Create the task for one occurrence, copying the master's template fields."""
        data = {name: getattr(master, name) for name in TEMPLATE_FIELDS}
        data["status"] = DEFAULT_STATUS
        data["due_date"] = due_date

        task = self.create(data, is_recurring=False, recurring_master_id=master.id)
        self.copy_associations(master.id, task.id)
        return task

    def get_by_id(self, task_id: int) -> Optional[Task]:
        """Get a specific task by ID."""
        return self.session.get(Task, task_id)

    def get_many(self, task_ids: Iterable[int]) -> List[Task]:
        """Get tasks by ID, ordered by due date."""
        task_ids = list(task_ids)
        if not task_ids:
            return []
        statement = (
            select(Task)
            .where(Task.id.in_(task_ids))
            .order_by(Task.due_date.asc(), Task.id.asc())
        )
        return list(self.session.exec(statement).all())

    def update_fields(self, task: Task, updates: Dict[str, Any]) -> Task:
        """Apply field updates to a task."""
        for name, value in updates.items():
            setattr(task, name, value)
        task.updated_at = datetime.utcnow()
        self.session.add(task)
        self.session.flush()
        return task

    def delete(self, task_id: int) -> bool:
        """Hard-delete a task together with its associations."""
        task = self.get_by_id(task_id)
        if not task:
            return False

        self.remove_associations(task_id)
        self.session.delete(task)
        self.session.flush()
        return True

    # Associations

    def get_tag_ids(self, task_id: int) -> List[str]:
        statement = select(TaskTag.tag_id).where(TaskTag.task_id == task_id).order_by(TaskTag.tag_id)
        return list(self.session.exec(statement).all())

    def get_assignee_ids(self, task_id: int) -> List[str]:
        statement = (
            select(TaskAssignee.user_id)
            .where(TaskAssignee.task_id == task_id)
            .order_by(TaskAssignee.user_id)
        )
        return list(self.session.exec(statement).all())

    def add_tags(self, task_id: int, tag_ids: Iterable[str]) -> None:
        for tag_id in dict.fromkeys(tag_ids):
            self.session.add(TaskTag(task_id=task_id, tag_id=tag_id))
        self.session.flush()

    def add_assignees(self, task_id: int, user_ids: Iterable[str], assigned_by: Optional[str] = None) -> None:
        for user_id in dict.fromkeys(user_ids):
            self.session.add(TaskAssignee(task_id=task_id, user_id=user_id, assigned_by=assigned_by))
        self.session.flush()

    def copy_associations(self, source_task_id: int, target_task_id: int) -> None:
        """Copy tags and assignees verbatim from one task to another."""
        self.add_tags(target_task_id, self.get_tag_ids(source_task_id))
        self.add_assignees(target_task_id, self.get_assignee_ids(source_task_id))

    def remove_associations(self, task_id: int) -> None:
        for tag in self.session.exec(select(TaskTag).where(TaskTag.task_id == task_id)).all():
            self.session.delete(tag)
        for assignee in self.session.exec(select(TaskAssignee).where(TaskAssignee.task_id == task_id)).all():
            self.session.delete(assignee)
        self.session.flush()

    def get_recurring_masters(self, plan_id: Optional[str] = None) -> List[Task]:
        """Get master tasks of recurring series, newest first."""
        statement = select(Task).where(Task.is_recurring == True)  # noqa: E712
        if plan_id:
            statement = statement.where(Task.plan_id == plan_id)
        statement = statement.order_by(Task.created_at.desc(), Task.id.desc())
        return list(self.session.exec(statement).all())
