"""Initialize database tables."""
import logging

from sqlmodel import SQLModel
from sqlalchemy.engine import Engine

# Imported so the tables are registered on SQLModel.metadata
from taskseries.models import Task, TaskTag, TaskAssignee, RecurrenceRule, RecurrenceInstance  # noqa: F401
from taskseries.db.config import engine as default_engine

logger = logging.getLogger(__name__)


def init_db(engine: Engine = None):
    """Create all tables in the database."""
    engine = engine or default_engine
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
