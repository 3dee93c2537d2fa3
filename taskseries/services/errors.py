"""
Recurrence error taxonomy.

Every error carries a machine-readable code, a message and a details dict
naming the record (task_id, rule_id, original_date) and scope involved.
"""

from typing import Any, Dict, Optional


class RecurrenceError(Exception):
    """Base exception for recurring task errors"""
    code = "RECURRENCE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Standardized error payload."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class RecurrenceValidationError(RecurrenceError):
    """Malformed recurrence configuration, rule text or update request."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if errors:
            details["errors"] = list(errors)
        super().__init__(message, details)
        self.errors = list(errors or [])


class NotFoundError(RecurrenceError):
    """A task, rule, instance or master task does not exist."""
    code = "NOT_FOUND"


class NotRecurringError(RecurrenceError):
    """The task has no recurrence rule associated with it."""
    code = "NOT_RECURRING"


class ConflictError(RecurrenceError):
    """An occurrence was already materialized for the same rule and date."""
    code = "CONFLICT"
