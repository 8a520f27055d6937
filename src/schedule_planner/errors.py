from __future__ import annotations


class ContextValidationError(Exception):
    """Raised when a seed context file is malformed (wrong shape, bad types)."""


class ScheduleStoreError(Exception):
    """Raised when the schedule store location cannot be used."""
