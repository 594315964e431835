# src/job_scheduler/scheduler/task_api.py

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace

from ..core.ports import JobStore
from .errors import FormatError, NotFound
from .task_codec import CONTROL_DELIMITER, FIELD_DELIMITER, encode_control, encode_task
from .task_dispatcher import DEFAULT_CONTROL_CHANNEL, DEFAULT_TODO_CHANNEL
from .task_models import (
    FIELD_CONTENT,
    FIELD_DURATION,
    FIELD_ID,
    FIELD_SCHEDULE_TYPE,
    FIELD_SLOT,
    FIELD_STATUS,
    ControlAction,
    ControlEvent,
    ScheduleType,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_MAX_LENGTH = 64


@dataclass(slots=True)
class JobRecord:
    id: str
    content: str
    schedule_type: ScheduleType
    duration: int


class JobBook:
    """
    The API layer's own record set, indexed by slot.

    Freed slots are reused, lowest first. The slot number travels with the task
    through the scheduler untouched.
    """

    def __init__(self) -> None:
        self._records: list[JobRecord | None] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for r in self._records if r is not None)

    def insert(self, record: JobRecord) -> int:
        with self._lock:
            for idx, existing in enumerate(self._records):
                if existing is None:
                    self._records[idx] = record
                    return idx
            self._records.append(record)
            return len(self._records) - 1

    def get(self, slot: int) -> JobRecord | None:
        with self._lock:
            if 0 <= slot < len(self._records):
                return self._records[slot]
            return None

    def remove(self, slot: int) -> JobRecord | None:
        with self._lock:
            if 0 <= slot < len(self._records):
                record = self._records[slot]
                self._records[slot] = None
                return record
            return None


def _task_from_fields(task_id: str, fields: dict[str, str]) -> Task:
    try:
        return Task(
            id=fields[FIELD_ID],
            content=fields[FIELD_CONTENT],
            schedule_type=ScheduleType(fields[FIELD_SCHEDULE_TYPE]),
            duration=int(fields[FIELD_DURATION]),
            slot=int(fields[FIELD_SLOT]),
            status=TaskStatus.from_store(fields.get(FIELD_STATUS)),
        )
    except (KeyError, ValueError):
        # A bare status hash (or garbage) does not describe a job.
        raise NotFound(task_id) from None


class JobApi:
    """
    Client side of the scheduler boundary.

    - create: push the task encoding to the todo channel
    - update/delete: push a control event to the control channel
    - find: read the task hash from the store
    """

    def __init__(
        self,
        store: JobStore,
        *,
        book: JobBook | None = None,
        todo_channel: str = DEFAULT_TODO_CHANNEL,
        control_channel: str = DEFAULT_CONTROL_CHANNEL,
        content_max_length: int = DEFAULT_CONTENT_MAX_LENGTH,
    ) -> None:
        self._store = store
        self.book = book if book is not None else JobBook()
        self._todo_channel = todo_channel
        self._control_channel = control_channel
        self._content_max_length = int(content_max_length)

    # ---- validation ----

    def _check_content(self, content: str) -> str:
        content = (content or "").strip()
        if not content:
            raise ValueError("content is required")
        if len(content) > self._content_max_length:
            raise ValueError(f"content is longer than {self._content_max_length} characters")
        if FIELD_DELIMITER in content or CONTROL_DELIMITER in content:
            raise FormatError(
                f"content must not contain {FIELD_DELIMITER!r} or {CONTROL_DELIMITER!r}"
            )
        return content

    @staticmethod
    def _check_schedule_type(raw: str | ScheduleType) -> ScheduleType:
        try:
            return ScheduleType(raw)
        except ValueError:
            allowed = ", ".join(t.value for t in ScheduleType)
            raise ValueError(f"schedule_type must be one of: {allowed}") from None

    @staticmethod
    def _check_duration(raw: int | str) -> int:
        try:
            duration = int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"duration must be an integer: {raw!r}") from None
        if duration <= 0:
            raise ValueError("duration must be positive")
        return duration

    # ---- operations ----

    async def create_job(
        self, content: str, schedule_type: str | ScheduleType, duration: int | str
    ) -> Task:
        record = JobRecord(
            id=str(uuid.uuid4()),
            content=self._check_content(content),
            schedule_type=self._check_schedule_type(schedule_type),
            duration=self._check_duration(duration),
        )
        slot = self.book.insert(record)
        task = Task(
            id=record.id,
            content=record.content,
            schedule_type=record.schedule_type,
            duration=record.duration,
            slot=slot,
        )

        try:
            await self._store.queue_push(self._todo_channel, encode_task(task))
        except Exception:
            self.book.remove(slot)
            raise

        logger.info("Job created id=%s slot=%d type=%s", task.id, slot, task.schedule_type.value)
        return task

    async def find_job(self, task_id: str) -> Task:
        fields = await self._store.hash_get_all(task_id)
        if not fields:
            raise NotFound(task_id)
        return _task_from_fields(task_id, fields)

    async def update_job(
        self,
        task_id: str,
        *,
        content: str | None = None,
        schedule_type: str | ScheduleType | None = None,
        duration: int | str | None = None,
    ) -> Task:
        task = await self.find_job(task_id)
        record = self.book.get(task.slot)
        if record is None or record.id != task_id:
            raise NotFound(task_id)

        updated = replace(
            task,
            content=record.content if content is None else self._check_content(content),
            schedule_type=(
                record.schedule_type
                if schedule_type is None
                else self._check_schedule_type(schedule_type)
            ),
            duration=record.duration if duration is None else self._check_duration(duration),
            status=TaskStatus.RUNNING,
        )
        event = ControlEvent(target_id=task_id, action=ControlAction.UPDATE, task=updated)
        await self._store.queue_push(self._control_channel, encode_control(event))

        record.content = updated.content
        record.schedule_type = updated.schedule_type
        record.duration = updated.duration
        logger.info("Job update queued id=%s", task_id)
        return updated

    async def delete_job(self, task_id: str) -> None:
        task = await self.find_job(task_id)
        record = self.book.get(task.slot)
        if record is None or record.id != task_id:
            raise NotFound(task_id)

        self.book.remove(task.slot)
        event = ControlEvent(target_id=task_id, action=ControlAction.DELETE)
        await self._store.queue_push(self._control_channel, encode_control(event))

        logger.info("Job delete queued id=%s", task_id)
