"""Database configuration for the recurring task engine."""
import logging
from typing import Generator

from sqlmodel import create_engine, Session
from sqlalchemy import event
from sqlalchemy.engine import Engine

from taskseries.config import DATABASE_URL, IS_SQLITE

logger = logging.getLogger(__name__)

if IS_SQLITE:
    logger.info("Using SQLite database: %s", DATABASE_URL)
else:
    logger.info("Using PostgreSQL database")


def build_engine(database_url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine, enabling foreign keys and WAL mode on SQLite."""
    is_sqlite = database_url.startswith("sqlite")
    # SQLite connections are shared across threads by the API server
    args = {"check_same_thread": False} if is_sqlite else {}
    new_engine = create_engine(database_url, echo=False, connect_args=args, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # Foreign keys are off by default in SQLite
            cursor.execute("PRAGMA foreign_keys=ON")
            if ":memory:" not in database_url:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return new_engine


engine = build_engine(DATABASE_URL)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
