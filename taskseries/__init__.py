"""Recurring task engine: rule codec, occurrence expansion and series lifecycle."""

__version__ = "1.0.0"
