"""Services package for the recurring task engine."""
