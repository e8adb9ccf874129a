"""Service layer for the department tree."""
