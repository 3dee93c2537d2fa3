"""
Structured logging for series lifecycle events.

Each record is one JSON object: timestamp, level, component, message and
whatever context the caller passes (task_id, rule_id, scope, dates...).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from taskseries.config import LOG_LEVEL


class JsonFormatter(logging.Formatter):
    """Render a record and its structured context as a JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "context", {}))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # Dates and enums are rendered with str()
        return json.dumps(payload, default=str)


class StructuredLogger:
    """Logger that attaches keyword context to every record."""

    def __init__(self, name: str, level: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.context = dict(context or {})

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False
            self.logger.setLevel(level if level is not None else LOG_LEVEL)

    def bind(self, **context) -> "StructuredLogger":
        """Return a logger that adds context to every record it writes."""
        return StructuredLogger(self.logger.name, context={**self.context, **context})

    def _log(self, level: int, message: str, exc_info: bool = False, **context):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, exc_info=exc_info, extra={"context": {**self.context, **context}})

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, **context)

    def exception(self, message: str, **context):
        """Log at ERROR with the active traceback."""
        self._log(logging.ERROR, message, exc_info=True, **context)


def get_logger(name: str, **context) -> StructuredLogger:
    """
    Get a structured logger for a component.

    Args:
        name: Logger name, usually __name__
        **context: Fields added to every record

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name, context=context)
