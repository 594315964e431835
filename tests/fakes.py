# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from job_scheduler.scheduler.errors import StoreUnavailable
from job_scheduler.scheduler.task_models import ExecutionEvent, TaskStatus
from job_scheduler.scheduler.task_store import InMemoryJobStore

# One duration unit in tests: 1 "second" of task time == 20ms of wall time.
TEST_UNIT = 0.02


@dataclass(slots=True)
class RecordingSink:
    """
    ExecutionSink that records every event.

    - on_emit: optional hook called after recording (tests use it to flip status)
    - fail_first: raise on the first N emits (after recording)
    """

    events: list[ExecutionEvent] = field(default_factory=list)
    on_emit: Callable[[ExecutionEvent], None] | None = None
    fail_first: int = 0

    async def emit(self, event: ExecutionEvent) -> None:
        self.events.append(event)
        if self.on_emit is not None:
            self.on_emit(event)
        if self.fail_first > 0:
            self.fail_first -= 1
            raise RuntimeError("sink failure")

    def for_task(self, task_id: str) -> list[ExecutionEvent]:
        return [e for e in self.events if e.task_id == task_id]


class BlockingSink:
    """Sink whose emit never returns until released (simulates a stuck side effect)."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def emit(self, event: ExecutionEvent) -> None:
        self.entered.set()
        await self.release.wait()


class ScriptedStatusReader:
    """StatusReader backed by a dict; unknown ids raise like a missing hash would."""

    def __init__(self, statuses: Mapping[str, TaskStatus] | None = None, *, fail: bool = False) -> None:
        self.statuses: dict[str, TaskStatus] = dict(statuses or {})
        self.fail = fail
        self.reads = 0

    async def read_status(self, task_id: str) -> TaskStatus:
        self.reads += 1
        if self.fail:
            raise StoreUnavailable("scripted failure")
        try:
            return self.statuses[task_id]
        except KeyError:
            raise StoreUnavailable(f"no status for {task_id}") from None


class FlakyStore(InMemoryJobStore):
    """
    InMemoryJobStore with switchable failures.

    - fail_drain: channels whose drain raises (nothing is removed)
    - fail_hash_set_keys: keys whose hash_set raises
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_drain: set[str] = set()
        self.fail_hash_set_keys: set[str] = set()

    async def queue_drain(self, channel: str) -> list[str]:
        if channel in self.fail_drain:
            raise StoreUnavailable(f"drain {channel} failed")
        return await super().queue_drain(channel)

    async def hash_set(self, key: str, fields: Mapping[str, str]) -> None:
        if key in self.fail_hash_set_keys:
            raise StoreUnavailable(f"hash_set {key} failed")
        await super().hash_set(key, fields)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, step: float = 0.005) -> bool:
    """Poll `predicate` until true or `timeout` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step)
    return predicate()
