# src/job_scheduler/scheduler/task_codec.py

"""
Wire encoding for queue entries.

Formats:
- task:          "{id}::{content}::{schedule_type}::{duration}::{slot}"
- delete event:  "{id}|delete"
- update event:  "{id}|update|{task encoding}"

There is no escaping. Ids may contain neither delimiter, task content may not
contain "::", and content carried inside an update event may not contain "|".
So everything this module writes can be decoded again. Foreign entries with a
delimiter inside a field fail to decode (wrong arity).
"""

from __future__ import annotations

from .errors import FormatError
from .task_models import ControlAction, ControlEvent, ScheduleType, Task, TaskStatus

FIELD_DELIMITER = "::"
CONTROL_DELIMITER = "|"

_TASK_ARITY = 5
_DELETE_ARITY = 2
_UPDATE_ARITY = 3


def _check_free_text(name: str, value: str, delimiters: tuple[str, ...]) -> None:
    for delimiter in delimiters:
        if delimiter in value:
            raise FormatError(f"{name} must not contain {delimiter!r}: {value!r}")


def _parse_int(name: str, raw: str, entry: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise FormatError(f"{name} is not an integer: {raw!r}", entry) from None


def encode_task(task: Task) -> str:
    if not task.id:
        raise FormatError("task id is empty")
    _check_free_text("id", task.id, (FIELD_DELIMITER, CONTROL_DELIMITER))
    _check_free_text("content", task.content, (FIELD_DELIMITER,))
    if task.duration <= 0:
        raise FormatError(f"duration must be positive: {task.duration}")

    return FIELD_DELIMITER.join(
        (
            task.id,
            task.content,
            ScheduleType(task.schedule_type).value,
            str(int(task.duration)),
            str(int(task.slot)),
        )
    )


def decode_task(entry: str) -> Task:
    parts = entry.split(FIELD_DELIMITER)
    if len(parts) != _TASK_ARITY:
        raise FormatError(f"task entry has {len(parts)} fields, expected {_TASK_ARITY}", entry)

    task_id, content, raw_type, raw_duration, raw_slot = parts
    if not task_id:
        raise FormatError("task id is empty", entry)

    try:
        schedule_type = ScheduleType(raw_type)
    except ValueError:
        raise FormatError(f"unknown schedule type: {raw_type!r}", entry) from None

    duration = _parse_int("duration", raw_duration, entry)
    if duration <= 0:
        raise FormatError(f"duration must be positive: {duration}", entry)
    slot = _parse_int("slot", raw_slot, entry)

    return Task(
        id=task_id,
        content=content,
        schedule_type=schedule_type,
        duration=duration,
        slot=slot,
        status=TaskStatus.RUNNING,
    )


def encode_control(event: ControlEvent) -> str:
    if not event.target_id:
        raise FormatError("control event target id is empty")
    _check_free_text("target id", event.target_id, (FIELD_DELIMITER, CONTROL_DELIMITER))

    if event.action == ControlAction.DELETE:
        return CONTROL_DELIMITER.join((event.target_id, ControlAction.DELETE.value))

    if event.task is None:
        raise FormatError(f"update event for {event.target_id} carries no task")
    _check_free_text("update content", event.task.content, (CONTROL_DELIMITER,))
    return CONTROL_DELIMITER.join(
        (event.target_id, ControlAction.UPDATE.value, encode_task(event.task))
    )


def decode_control(entry: str) -> ControlEvent:
    parts = entry.split(CONTROL_DELIMITER)
    if len(parts) < _DELETE_ARITY:
        raise FormatError(f"control entry has {len(parts)} fields", entry)

    target_id, raw_action = parts[0], parts[1]
    if not target_id:
        raise FormatError("control event target id is empty", entry)

    try:
        action = ControlAction(raw_action)
    except ValueError:
        raise FormatError(f"unknown control action: {raw_action!r}", entry) from None

    if action == ControlAction.DELETE:
        if len(parts) != _DELETE_ARITY:
            raise FormatError(
                f"delete entry has {len(parts)} fields, expected {_DELETE_ARITY}", entry
            )
        return ControlEvent(target_id=target_id, action=action)

    if len(parts) != _UPDATE_ARITY:
        raise FormatError(f"update entry has {len(parts)} fields, expected {_UPDATE_ARITY}", entry)

    return ControlEvent(target_id=target_id, action=action, task=decode_task(parts[2]))
