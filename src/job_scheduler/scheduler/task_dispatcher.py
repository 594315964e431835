# src/job_scheduler/scheduler/task_dispatcher.py

from __future__ import annotations

"""
Dispatcher.

A polling loop that, every poll_interval seconds:
- Phase A (todo): drains the todo channel, writes each task's fields with
  status=RUNNING and starts an executor for it. A live executor already
  registered under the same id is stopped (and awaited) first.
- Phase B (control): drains the control channel, marks the target STOPPED,
  raises the target executor's cancel token and, for updates, re-queues the
  new task version on the todo channel for the next tick. Re-queues happen
  after the whole batch; a delete later in the batch drops them.

Todo runs before control: the update's new version must not start in the
same tick that stops the old one.

Errors on one entry are logged and only that entry is skipped.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ..core.ports import ExecutionSink, JobStore
from .errors import FormatError, NotFound, StoreUnavailable
from .task_codec import decode_control, decode_task, encode_task
from .task_executor import LoggingSink, TaskExecutor
from .task_models import FIELD_STATUS, ControlAction, Task, TaskStatus
from .task_registry import ExecutionHandle, TaskRegistry
from .task_store import StoreStatusReader

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_TODO_CHANNEL = "todo-list"
DEFAULT_CONTROL_CHANNEL = "running-list"


@dataclass(slots=True)
class TickReport:
    """Counters for one dispatcher pass (mostly for logs and tests)."""

    dispatched: list[str] = field(default_factory=list)
    stopped: list[str] = field(default_factory=list)
    requeued: list[str] = field(default_factory=list)
    dropped: int = 0
    skipped: int = 0
    todo_skipped: bool = False
    control_skipped: bool = False


class Dispatcher:
    def __init__(
        self,
        store: JobStore,
        sink: ExecutionSink | None = None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        todo_channel: str = DEFAULT_TODO_CHANNEL,
        control_channel: str = DEFAULT_CONTROL_CHANNEL,
        stop_timeout: float = 5.0,
        seconds_per_unit: float = 1.0,
    ) -> None:
        self._store = store
        self._sink = sink or LoggingSink()
        self._status_reader = StoreStatusReader(store)
        self._registry = TaskRegistry(stop_timeout=stop_timeout)
        self._poll_interval = max(0.01, float(poll_interval))
        self._todo_channel = todo_channel
        self._control_channel = control_channel
        self._seconds_per_unit = float(seconds_per_unit)

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    # ---- loop ----

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """
        Tick every poll_interval seconds until stop_event is set.

        Executors are shut down on exit (including cancellation of this coroutine).
        """
        stop_event = stop_event or asyncio.Event()
        logger.info(
            "Dispatcher started interval=%.1fs todo=%s control=%s",
            self._poll_interval,
            self._todo_channel,
            self._control_channel,
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        try:
            while not stop_event.is_set():
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Dispatcher tick failed")

                # Ticks start on a fixed grid; a tick that overruns skips the missed slots.
                now = loop.time()
                deadline += self._poll_interval
                if deadline <= now:
                    missed = int((now - deadline) // self._poll_interval) + 1
                    deadline += missed * self._poll_interval
                    logger.debug("Tick overran, skipping %d slot(s)", missed)

                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=deadline - now)
                except TimeoutError:
                    pass
        finally:
            await self.shutdown()
            logger.info("Dispatcher stopped.")

    async def tick(self) -> TickReport:
        report = TickReport()
        self._registry.prune()

        logger.debug("Scanning %s", self._todo_channel)
        await self._drain_todo(report)

        logger.debug("Scanning %s", self._control_channel)
        await self._drain_control(report)

        if report.dispatched or report.stopped or report.dropped or report.skipped:
            logger.info(
                "Tick done dispatched=%d stopped=%d requeued=%d dropped=%d skipped=%d",
                len(report.dispatched),
                len(report.stopped),
                len(report.requeued),
                report.dropped,
                report.skipped,
            )
        return report

    async def shutdown(self) -> None:
        await self._registry.shutdown()

    # ---- phase A ----

    async def _drain_todo(self, report: TickReport) -> None:
        try:
            entries = await self._store.queue_drain(self._todo_channel)
        except StoreUnavailable:
            logger.warning("Store unavailable, skipping %s this tick", self._todo_channel, exc_info=True)
            report.todo_skipped = True
            return

        for entry in entries:
            try:
                task = decode_task(entry)
            except FormatError as e:
                logger.warning("Dropping malformed todo entry %r: %s", entry, e)
                report.dropped += 1
                continue

            try:
                await self._start(task)
            except StoreUnavailable:
                logger.warning("Store write failed task_id=%s, entry skipped", task.id, exc_info=True)
                report.skipped += 1
                continue
            except Exception:
                logger.exception("Failed to start executor task_id=%s", task.id)
                report.skipped += 1
                continue

            report.dispatched.append(task.id)

    async def _start(self, task: Task) -> None:
        # Same-id replacement: the previous version must be gone before the new one starts.
        if await self._registry.cancel(task.id):
            logger.info("Stopped previous executor task_id=%s before replacement", task.id)

        await self._store.hash_set(task.id, task.to_fields(TaskStatus.RUNNING))

        executor = TaskExecutor(
            task,
            self._status_reader,
            self._sink,
            seconds_per_unit=self._seconds_per_unit,
        )
        runner = asyncio.create_task(executor.run(), name=f"executor:{task.id}")
        self._registry.insert(ExecutionHandle(executor=executor, runner=runner))
        logger.info(
            "Task %s dispatched type=%s duration=%ds",
            task.id,
            task.schedule_type.value,
            task.duration,
        )

    # ---- phase B ----

    async def _drain_control(self, report: TickReport) -> None:
        try:
            entries = await self._store.queue_drain(self._control_channel)
        except StoreUnavailable:
            logger.warning(
                "Store unavailable, skipping %s this tick", self._control_channel, exc_info=True
            )
            report.control_skipped = True
            return

        # New versions are re-queued only after the whole batch, so a delete later
        # in the same batch still wins over an earlier update.
        pending: dict[str, Task] = {}

        for entry in entries:
            try:
                event = decode_control(entry)
            except FormatError as e:
                logger.warning("Dropping malformed control entry %r: %s", entry, e)
                report.dropped += 1
                continue

            if event.action == ControlAction.DELETE and pending.pop(event.target_id, None) is not None:
                logger.info(
                    "Task %s deleted in the same batch as its update, new version dropped",
                    event.target_id,
                )

            try:
                replacement = await self._apply_control(event.target_id, event.action, event.task, report)
                if replacement is not None:
                    pending[event.target_id] = replacement
            except NotFound:
                logger.warning("Control %s for unknown task_id=%s, skipped", event.action.value, event.target_id)
                report.skipped += 1
            except StoreUnavailable:
                logger.warning(
                    "Store unavailable applying %s task_id=%s, entry skipped",
                    event.action.value,
                    event.target_id,
                    exc_info=True,
                )
                report.skipped += 1
            except Exception:
                logger.exception("Control %s failed task_id=%s", event.action.value, event.target_id)
                report.skipped += 1

        for target_id, replacement in pending.items():
            try:
                await self._store.queue_push(self._todo_channel, encode_task(replacement))
            except StoreUnavailable:
                logger.warning("Re-queue failed task_id=%s, update lost", target_id, exc_info=True)
                report.skipped += 1
                continue
            report.requeued.append(target_id)
            logger.info("Task %s re-queued with new version", target_id)

    async def _apply_control(
        self,
        target_id: str,
        action: ControlAction,
        new_version: Task | None,
        report: TickReport,
    ) -> Task | None:
        """Stop the target. For an update, returns the new version to re-queue."""
        current = TaskStatus.from_store(await self._store.hash_get_field(target_id, FIELD_STATUS))

        # Both update and delete stop the running version.
        if current != TaskStatus.STOPPED:
            await self._store.hash_set(target_id, {FIELD_STATUS: TaskStatus.STOPPED.value})
            report.stopped.append(target_id)
            logger.info("Task %s -> STOPPED (%s)", target_id, action.value)
        else:
            logger.debug("Task %s already STOPPED (%s)", target_id, action.value)

        await self._registry.cancel(target_id)

        if action == ControlAction.UPDATE and new_version is not None:
            return Task(
                id=target_id,
                content=new_version.content,
                schedule_type=new_version.schedule_type,
                duration=new_version.duration,
                slot=new_version.slot,
            )
        return None
