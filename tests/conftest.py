"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database; StaticPool keeps the
single connection alive across sessions so the schema survives.
"""

from datetime import date

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from taskseries.db.config import build_engine
from taskseries.db.init import init_db
from taskseries.schemas.recurrence import RecurrenceConfig, Frequency, EndType
from taskseries.services.recurring_task_service import RecurringTaskService


class FixedClock:
    """Stands in for the wall clock; tests move it with .today = ..."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self, timezone: str) -> date:
        return self.today


@pytest.fixture()
def engine():
    engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def clock():
    return FixedClock(date(2025, 1, 1))


@pytest.fixture()
def service(session, clock):
    return RecurringTaskService(session, today_fn=clock)


@pytest.fixture()
def daily_config():
    """Daily, three occurrences."""
    return RecurrenceConfig(frequency=Frequency.DAILY, interval=1, end_type=EndType.COUNT, end_count=3)


@pytest.fixture()
def mwf_config():
    """Mon/Wed/Fri, six occurrences."""
    return RecurrenceConfig(
        frequency=Frequency.WEEKLY,
        interval=1,
        days_of_week=[1, 3, 5],
        end_type=EndType.COUNT,
        end_count=6,
    )
