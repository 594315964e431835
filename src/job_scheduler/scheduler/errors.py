# src/job_scheduler/scheduler/errors.py

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for scheduler errors."""


class FormatError(SchedulerError, ValueError):
    """A queue entry (or a record about to be encoded) is malformed."""

    def __init__(self, message: str, entry: str | None = None) -> None:
        super().__init__(message)
        self.entry = entry


class StoreUnavailable(SchedulerError):
    """The store/queue backend could not be reached."""


class NotFound(SchedulerError):
    """Lookup against an unknown task id (or a missing field)."""

    def __init__(self, key: str, field: str | None = None) -> None:
        what = f"{key}.{field}" if field else key
        super().__init__(f"not found: {what}")
        self.key = key
        self.field = field
