"""Routers package for the recurring task engine."""

from .recurrence import router as recurrence_router

__all__ = ["recurrence_router"]
