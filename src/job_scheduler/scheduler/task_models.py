# src/job_scheduler/scheduler/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class ScheduleType(StrEnum):
    ONE_SHOT = "OneShot"
    REPEATED = "Repeated"


class TaskStatus(StrEnum):
    """
    Status flag stored per task.

    The dispatcher writes it, executors only read it.
    Anything that is not RUNNING means "do not fire".
    """

    RUNNING = "RUNNING"
    STOPPED = "STOPPED"

    @classmethod
    def from_store(cls, raw: str | None) -> TaskStatus:
        # Unknown values are treated as stopped (fail-safe).
        if raw == cls.RUNNING.value:
            return cls.RUNNING
        return cls.STOPPED


class ControlAction(StrEnum):
    UPDATE = "update"
    DELETE = "delete"


class ExecutorState(StrEnum):
    ACTIVE = "active"
    TERMINAL = "terminal"


# Field names of the per-task hash in the status store.
FIELD_ID = "id"
FIELD_CONTENT = "content"
FIELD_SCHEDULE_TYPE = "schedule_type"
FIELD_DURATION = "duration"
FIELD_STATUS = "status"
FIELD_SLOT = "slot"

TASK_FIELDS = (FIELD_ID, FIELD_CONTENT, FIELD_SCHEDULE_TYPE, FIELD_DURATION, FIELD_STATUS, FIELD_SLOT)


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    content: str
    schedule_type: ScheduleType
    duration: int
    slot: int
    status: TaskStatus = TaskStatus.RUNNING

    def to_fields(self, status: TaskStatus | None = None) -> dict[str, str]:
        """String-encoded hash fields as written to the status store."""
        return {
            FIELD_ID: self.id,
            FIELD_CONTENT: self.content,
            FIELD_SCHEDULE_TYPE: self.schedule_type.value,
            FIELD_DURATION: str(self.duration),
            FIELD_STATUS: (status or self.status).value,
            FIELD_SLOT: str(self.slot),
        }


@dataclass(slots=True, frozen=True)
class ControlEvent:
    target_id: str
    action: ControlAction
    task: Task | None = None  # replacement version, update only


@dataclass(slots=True, frozen=True)
class ExecutionEvent:
    """What an executor emits each time its task fires."""

    task_id: str
    content: str
    schedule_type: ScheduleType
    fired_at: datetime
    sequence: int
