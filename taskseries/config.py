"""Environment configuration for the recurring task engine."""
import os
from dotenv import load_dotenv

# Load environment variables from a local .env file when present
load_dotenv()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

# Use the DATABASE_URL from environment variable, with fallback to SQLite for local dev
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./taskseries.db")
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# IANA zone used when a recurrence config does not name one
DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")

# Max instances materialized per generation call for newly created rules
GENERATION_LIMIT = int(os.environ.get("GENERATION_LIMIT", "20"))

# How far past the starting date the expander looks for occurrences
EXPANSION_HORIZON_DAYS = int(os.environ.get("EXPANSION_HORIZON_DAYS", str(365 * 5)))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
