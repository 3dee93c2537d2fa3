"""Pydantic schemas for the recurring task API."""
