# src/job_scheduler/scheduler/task_executor.py

from __future__ import annotations

"""
Per-task executor.

One executor runs one task version:
- OneShot:  wait `duration`, check status, fire at most once, finish.
- Repeated: fire at t0+d, t0+2d, ... while the status stays RUNNING.

Stopping is cooperative. The executor stops when either
- the status read returns anything but RUNNING (or fails), or
- its cancel token is set by the dispatcher (wakes it up early from a wait).

A firing that has already started is never interrupted.
"""

import asyncio
import logging
from datetime import UTC, datetime

from ..core.ports import ExecutionSink, StatusReader
from .task_models import ExecutionEvent, ExecutorState, ScheduleType, Task, TaskStatus

logger = logging.getLogger(__name__)


class LoggingSink:
    """Default sink: the side effect of a task is a log line."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("job_scheduler.fired")

    async def emit(self, event: ExecutionEvent) -> None:
        self._log.info(
            "**** id: %s, content: %s, type: %s, now is %s (#%d) ****",
            event.task_id,
            event.content,
            event.schedule_type.value,
            event.fired_at.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            event.sequence,
        )


class TaskExecutor:
    def __init__(
        self,
        task: Task,
        status_reader: StatusReader,
        sink: ExecutionSink,
        *,
        cancel_token: asyncio.Event | None = None,
        seconds_per_unit: float = 1.0,
    ) -> None:
        self.task = task
        self._status = status_reader
        self._sink = sink
        self.cancel_token = cancel_token or asyncio.Event()
        self._period = float(task.duration) * float(seconds_per_unit)

        self.state = ExecutorState.ACTIVE
        self.fired = 0
        self.stop_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state == ExecutorState.TERMINAL

    def cancel(self) -> None:
        self.cancel_token.set()

    async def run(self) -> None:
        logger.debug(
            "Executor start task_id=%s type=%s period=%.3fs",
            self.task.id,
            self.task.schedule_type.value,
            self._period,
        )
        try:
            if self.task.schedule_type == ScheduleType.ONE_SHOT:
                await self._run_one_shot()
            else:
                await self._run_repeated()
        finally:
            self.state = ExecutorState.TERMINAL
            logger.debug(
                "Executor terminal task_id=%s fired=%d reason=%s",
                self.task.id,
                self.fired,
                self.stop_reason,
            )

    # ---- schedules ----

    async def _run_one_shot(self) -> None:
        if await self._wait(self._period):
            self.stop_reason = "cancelled"
            return
        if not await self._should_fire():
            return
        await self._fire()
        self.stop_reason = "completed"

    async def _run_repeated(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        boundary = 0

        while True:
            boundary += 1
            delay = started + boundary * self._period - loop.time()
            if await self._wait(delay):
                self.stop_reason = "cancelled"
                return
            if not await self._should_fire():
                return
            await self._fire()

    # ---- helpers ----

    async def _wait(self, delay: float) -> bool:
        """Sleep up to `delay` seconds. Returns True if the cancel token was set."""
        if self.cancel_token.is_set():
            return True
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self.cancel_token.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    async def _should_fire(self) -> bool:
        try:
            status = await self._status.read_status(self.task.id)
        except Exception:
            # Store trouble or unknown id: treat as stopped.
            logger.warning("Status read failed task_id=%s, stopping", self.task.id, exc_info=True)
            self.stop_reason = "status_unavailable"
            return False

        if status != TaskStatus.RUNNING:
            self.stop_reason = f"status={status.value}"
            return False

        if self.cancel_token.is_set():
            self.stop_reason = "cancelled"
            return False

        return True

    async def _fire(self) -> None:
        self.fired += 1
        event = ExecutionEvent(
            task_id=self.task.id,
            content=self.task.content,
            schedule_type=self.task.schedule_type,
            fired_at=datetime.now(UTC),
            sequence=self.fired,
        )
        try:
            await self._sink.emit(event)
        except Exception:
            logger.exception("Side effect failed task_id=%s seq=%d", self.task.id, self.fired)
