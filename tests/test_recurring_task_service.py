"""Tests for the recurring series lifecycle."""

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from taskseries.models import Task, RecurrenceRule, RecurrenceInstance, TaskTag
from taskseries.schemas.recurrence import RecurrenceConfig, Frequency, EndType, EditScope
from taskseries.schemas.task import TaskCreate, TaskUpdate
from taskseries.services.errors import (
    RecurrenceValidationError,
    NotFoundError,
    NotRecurringError,
    ConflictError,
)
from taskseries.services.occurrence_expander import next_occurrences
from taskseries.services.recurring_task_service import is_duplicate_occurrence
from taskseries.services.task_service import TaskService

D1, D2, D3 = date(2025, 1, 10), date(2025, 1, 11), date(2025, 1, 12)


def make_series(service, config, due_date=D1, **kwargs):
    task = TaskCreate(title="Water plants", priority="low", plan_id="plan-1", due_date=due_date)
    return service.create_series(task, config, **kwargs)


def task_on(session, series, day):
    """The live task of a series dated day."""
    statement = select(Task).where(
        Task.recurring_master_id == series.master_task.id,
        Task.due_date == day
    )
    return session.exec(statement).first()


def all_tasks(session):
    return session.exec(select(Task)).all()


# ---------------------------------------------------------------------------
# Creation and generation
# ---------------------------------------------------------------------------


def test_create_series_materializes_first_batch(service, session, daily_config):
    series = make_series(service, daily_config, tag_ids=["garden", "home"], assignee_ids=["u1"])

    assert series.master_task.is_recurring is True
    assert series.master_task.recurring_master_id is None
    assert series.rule.rrule == "DTSTART:20250110T000000\nRRULE:FREQ=DAILY;INTERVAL=1;COUNT=3"
    assert [t.due_date for t in series.instances] == [D1, D2, D3]
    assert series.rule.last_generated_date == D3

    store = TaskService(session)
    for task in series.instances:
        assert task.recurring_master_id == series.master_task.id
        assert task.is_recurring is False
        assert task.title == "Water plants"
        assert task.priority == "low"
        assert task.status == "pending"
        assert store.get_tag_ids(task.id) == ["garden", "home"]
        assert store.get_assignee_ids(task.id) == ["u1"]


def test_weekly_mon_wed_fri_count_six(service, mwf_config):
    series = make_series(service, mwf_config, due_date=date(2025, 1, 6))

    assert [t.due_date for t in series.instances] == [
        date(2025, 1, 6), date(2025, 1, 8), date(2025, 1, 10),
        date(2025, 1, 13), date(2025, 1, 15), date(2025, 1, 17),
    ]
    assert service.generate_instances(series.rule.id, from_date=date(2025, 1, 6)) == []


def test_generation_never_exceeds_count(service, session):
    config = RecurrenceConfig(frequency=Frequency.DAILY, end_type=EndType.COUNT, end_count=5)
    series = make_series(service, config)

    for _ in range(3):
        assert service.generate_instances(series.rule.id, from_date=D1, count=2) == []

    instances = service.list_instances(series.rule.id)
    assert len(instances) == 5
    assert len(all_tasks(session)) == 6


def test_generate_continues_after_materialized_dates(service, session):
    series = make_series(service, RecurrenceConfig(frequency=Frequency.DAILY))
    assert len(series.instances) == 20

    created = service.generate_instances(series.rule.id, from_date=D1, count=3)

    assert [t.due_date for t in created] == [date(2025, 1, 30), date(2025, 1, 31), date(2025, 2, 1)]
    assert session.get(RecurrenceRule, series.rule.id).last_generated_date == date(2025, 2, 1)


def test_generate_defaults_to_today(service, clock):
    series = make_series(service, RecurrenceConfig(frequency=Frequency.DAILY))
    clock.today = date(2025, 6, 1)

    created = service.generate_instances(series.rule.id, count=1)

    assert created[0].due_date == date(2025, 6, 1)


def test_paused_rule_generates_nothing(service):
    series = make_series(service, RecurrenceConfig(frequency=Frequency.DAILY))

    assert service.pause_series(series.master_task.id).is_paused is True
    assert service.generate_instances(series.rule.id, from_date=D1, count=5) == []

    service.resume_series(series.master_task.id)
    assert len(service.generate_instances(series.rule.id, from_date=D1, count=5)) == 5


def test_series_without_due_date_is_anchored_today(service, clock, daily_config):
    clock.today = date(2025, 3, 3)

    series = service.create_series({"title": "Stretch"}, daily_config)

    assert series.master_task.due_date is None
    assert [t.due_date for t in series.instances][0] == date(2025, 3, 3)


def test_create_series_rejects_invalid_config_without_writes(service, session):
    with pytest.raises(RecurrenceValidationError):
        make_series(service, RecurrenceConfig(frequency=Frequency.MONTHLY))

    assert all_tasks(session) == []


def test_create_series_rolls_back_on_failure(service, session, daily_config, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(service, "_generate", boom)

    with pytest.raises(RuntimeError):
        make_series(service, daily_config)

    assert all_tasks(session) == []
    assert session.exec(select(RecurrenceRule)).all() == []


def test_duplicate_occurrence_raises_conflict(service, session, daily_config, monkeypatch):
    series = make_series(service, daily_config)
    rule_id = series.rule.id
    before = len(all_tasks(session))

    # A concurrent writer materialized the same dates after our exclusion check
    monkeypatch.setattr(service, "_excluded_dates", lambda rule_id: set())

    with pytest.raises(ConflictError) as exc_info:
        service.generate_instances(rule_id, from_date=D1)

    assert exc_info.value.details["original_date"] == "2025-01-10"
    assert len(all_tasks(session)) == before
    assert len(service.list_instances(rule_id)) == 3


def test_only_the_occurrence_constraint_counts_as_duplicate():
    unique = IntegrityError(
        "INSERT INTO recurrence_instance", {},
        Exception("UNIQUE constraint failed: recurrence_instance.rule_id, recurrence_instance.original_date")
    )
    named = IntegrityError("INSERT INTO recurrence_instance", {}, Exception('violates "uq_instance_rule_date"'))
    not_null = IntegrityError("UPDATE task", {}, Exception("NOT NULL constraint failed: task.status"))

    assert is_duplicate_occurrence(unique) is True
    assert is_duplicate_occurrence(named) is True
    assert is_duplicate_occurrence(not_null) is False


def test_other_integrity_errors_are_not_conflicts(service, session, daily_config, monkeypatch):
    series = make_series(service, daily_config)

    def not_null(task, updates):
        raise IntegrityError("UPDATE task", {}, Exception("NOT NULL constraint failed: task.status"))

    monkeypatch.setattr(service.tasks, "update_fields", not_null)

    with pytest.raises(IntegrityError):
        service.update_series(series.instances[0].id, {"title": "Water cactus"}, "all")

    assert session.get(Task, series.master_task.id).title == "Water plants"


def test_zero_count_generates_nothing(service, session):
    series = make_series(service, RecurrenceConfig(frequency=Frequency.DAILY))
    before = len(all_tasks(session))

    assert service.generate_instances(series.rule.id, from_date=D1, count=0) == []
    assert len(all_tasks(session)) == before


def test_sparse_series_keeps_generating(service):
    config = RecurrenceConfig(frequency=Frequency.YEARLY, interval=10)
    series = make_series(service, config, due_date=date(2025, 1, 1))

    created = service.generate_instances(series.rule.id, from_date=date(2025, 1, 1), count=1)

    assert [t.due_date for t in series.instances][:2] == [date(2025, 1, 1), date(2035, 1, 1)]
    assert len(series.instances) == 20
    assert [t.due_date for t in created] == [date(2225, 1, 1)]


def test_generate_for_missing_rule(service):
    with pytest.raises(NotFoundError):
        service.generate_instances(999)


# ---------------------------------------------------------------------------
# Scoped updates
# ---------------------------------------------------------------------------


def test_future_update_touches_today_onwards(service, session, clock, daily_config):
    series = make_series(service, daily_config)
    clock.today = D2

    updated = service.update_series(task_on(session, series, D2).id, {"title": "Water cactus"}, "future")

    assert {t.id for t in updated} == {
        series.master_task.id, task_on(session, series, D2).id, task_on(session, series, D3).id
    }
    assert task_on(session, series, D1).title == "Water plants"
    assert task_on(session, series, D2).title == "Water cactus"
    assert task_on(session, series, D3).title == "Water cactus"
    assert session.get(Task, series.master_task.id).title == "Water cactus"


def test_all_update_skips_exceptions(service, session, clock, daily_config):
    series = make_series(service, daily_config)
    clock.today = D2
    d2_task_id = task_on(session, series, D2).id

    service.update_series(d2_task_id, TaskUpdate(title="Skip this one"), EditScope.THIS)
    service.update_series(d2_task_id, {"priority": "high"}, "all")

    assert session.get(Task, d2_task_id).priority == "low"
    assert session.get(Task, d2_task_id).title == "Skip this one"
    assert task_on(session, series, D1).priority == "high"
    assert task_on(session, series, D3).priority == "high"
    assert session.get(Task, series.master_task.id).priority == "high"

    info = service.get_recurrence_info(d2_task_id)
    assert info.is_exception is True


def test_this_update_can_move_a_single_occurrence(service, session, daily_config):
    series = make_series(service, daily_config)
    task_id = series.instances[0].id

    service.update_series(task_id, {"due_date": date(2025, 1, 15)}, "this")

    info = service.get_recurrence_info(task_id)
    assert info.instance_date == D1
    assert info.on_pattern is False


def test_propagating_due_date_is_rejected(service, daily_config):
    series = make_series(service, daily_config)

    with pytest.raises(RecurrenceValidationError):
        service.update_series(series.instances[0].id, {"due_date": D3}, "future")


def test_this_scope_on_master_is_rejected(service, daily_config):
    series = make_series(service, daily_config)

    with pytest.raises(RecurrenceValidationError) as exc_info:
        service.update_series(series.master_task.id, {"title": "Nope"}, "this")

    assert exc_info.value.details["scope"] == "this"


def test_update_plain_task_is_not_recurring(service, session):
    plain = TaskService(session).create({"title": "One-off"})
    session.commit()

    with pytest.raises(NotRecurringError):
        service.update_series(plain.id, {"title": "Still one-off"}, "all")


def test_clearing_required_field_is_a_validation_error(service, session, daily_config):
    series = make_series(service, daily_config)

    with pytest.raises(RecurrenceValidationError) as exc_info:
        service.update_series(series.instances[0].id, {"status": None}, "all")

    assert exc_info.value.errors == ["Fields cannot be null: status"]
    assert all(t.status == "pending" for t in all_tasks(session))


def test_update_missing_task(service):
    with pytest.raises(NotFoundError):
        service.update_series(12345, {"title": "Ghost"}, "all")


# ---------------------------------------------------------------------------
# Scoped deletes
# ---------------------------------------------------------------------------


def test_this_delete_leaves_tombstone(service, session, daily_config):
    series = make_series(service, daily_config)
    task_id = series.instances[0].id

    assert service.delete_series(task_id, "this") == [task_id]

    assert session.get(Task, task_id) is None
    tombstone = session.exec(
        select(RecurrenceInstance).where(RecurrenceInstance.original_date == D1)
    ).one()
    assert tombstone.is_deleted is True
    assert tombstone.task_id is None
    assert tombstone.state == "deleted"

    # The deleted date is never generated again
    assert service.generate_instances(series.rule.id, from_date=D1) == []
    assert [i.original_date for i in service.list_instances(series.rule.id)] == [D2, D3]
    assert len(service.list_instances(series.rule.id, include_deleted=True)) == 3


def test_future_delete_ends_rule_before_today(service, session, clock, daily_config):
    series = make_series(service, daily_config)
    clock.today = D2
    d1_id, d2_id, d3_id = (t.id for t in series.instances)

    deleted = service.delete_series(d2_id, "future")

    assert deleted == [d2_id, d3_id]
    assert session.get(Task, d1_id) is not None
    assert session.get(Task, d2_id) is None
    assert session.get(Task, series.master_task.id) is not None

    rule = session.get(RecurrenceRule, series.rule.id)
    assert rule.end_type == "until"
    assert rule.end_date == D1
    assert rule.end_count is None
    assert next_occurrences(rule.rrule, D2, 10) == []
    assert service.generate_instances(rule.id, from_date=D1) == []


def test_all_delete_removes_everything(service, session, daily_config):
    series = make_series(service, daily_config, tag_ids=["garden"])
    master_id = series.master_task.id
    d1_id, d2_id, _ = (t.id for t in series.instances)
    service.delete_series(d1_id, "this")

    deleted = service.delete_series(d2_id, "all")

    assert master_id in deleted
    assert all_tasks(session) == []
    assert session.exec(select(RecurrenceRule)).all() == []
    assert session.exec(select(RecurrenceInstance)).all() == []
    assert session.exec(select(TaskTag)).all() == []


def test_delete_this_on_master_is_rejected(service, session, daily_config):
    series = make_series(service, daily_config)

    with pytest.raises(RecurrenceValidationError):
        service.delete_series(series.master_task.id, "this")

    assert len(all_tasks(session)) == 4


# ---------------------------------------------------------------------------
# Pattern changes and queries
# ---------------------------------------------------------------------------


def test_update_pattern_keeps_materialized_instances(service, session, daily_config):
    series = make_series(service, daily_config)
    weekly = RecurrenceConfig(frequency=Frequency.WEEKLY, days_of_week=[1])

    rule = service.update_pattern(series.instances[0].id, weekly)

    assert rule.frequency == "weekly"
    assert rule.days_of_week == [1]
    assert rule.rrule.startswith("DTSTART:20250110T000000")
    assert len(service.list_instances(rule.id)) == 3

    created = service.generate_instances(rule.id, from_date=D1, count=2)
    assert [t.due_date for t in created] == [date(2025, 1, 13), date(2025, 1, 20)]


def test_update_pattern_rejects_invalid_config(service, daily_config):
    series = make_series(service, daily_config)

    with pytest.raises(RecurrenceValidationError):
        service.update_pattern(series.master_task.id, RecurrenceConfig(frequency=Frequency.DAILY, interval=1,
                                                                       end_type=EndType.UNTIL))


def test_preview_scope(service, session, clock, daily_config):
    series = make_series(service, daily_config)
    clock.today = D2
    d1_id, d2_id, d3_id = (t.id for t in series.instances)

    this = service.preview_scope(d2_id, "this")
    future = service.preview_scope(d2_id, "future")
    future_delete = service.preview_scope(d2_id, "future", for_delete=True)
    everything = service.preview_scope(d1_id, "all")

    assert this.label == "Only this task"
    assert this.affected_task_ids == [d2_id]
    assert future.label == "This and future tasks"
    assert future.affected_task_ids == [series.master_task.id, d2_id, d3_id]
    assert future_delete.affected_task_ids == [d2_id, d3_id]
    assert everything.label == "All tasks in series"
    assert everything.affected_task_ids == [series.master_task.id, d1_id, d2_id, d3_id]


def test_recurrence_info(service, daily_config):
    series = make_series(service, daily_config)

    master_info = service.get_recurrence_info(series.master_task.id)
    instance_info = service.get_recurrence_info(series.instances[1].id)

    assert master_info.is_recurring is True
    assert master_info.is_instance is False
    assert master_info.instance_date is None
    assert instance_info.is_instance is True
    assert instance_info.master_task_id == series.master_task.id
    assert instance_info.rule_id == series.rule.id
    assert instance_info.instance_date == D2
    assert instance_info.on_pattern is True
    assert instance_info.frequency == "daily"
    assert instance_info.end_type == "count"


def test_queries(service, session, daily_config):
    series = make_series(service, daily_config)
    other = service.create_series(TaskCreate(title="Pay rent", plan_id="plan-2", due_date=D1), daily_config)
    plain = TaskService(session).create({"title": "One-off"})
    session.commit()

    assert [t.id for t in service.get_recurring_tasks("plan-1")] == [series.master_task.id]
    assert len(service.get_recurring_tasks()) == 2
    assert service.is_recurring_task(series.instances[0].id) is True
    assert service.is_recurring_task(other.master_task.id) is True
    assert service.is_recurring_task(plain.id) is False
    assert service.get_master_task_id(series.instances[0].id) == series.master_task.id
    assert service.get_master_task_id(plain.id) == plain.id
    assert service.get_rule_for_task(series.instances[2].id).id == series.rule.id

    with pytest.raises(NotFoundError):
        service.list_instances(999)
