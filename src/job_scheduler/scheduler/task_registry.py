# src/job_scheduler/scheduler/task_registry.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from .task_executor import TaskExecutor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExecutionHandle:
    """A running executor together with the asyncio task driving it."""

    executor: TaskExecutor
    runner: asyncio.Task[None]

    @property
    def task_id(self) -> str:
        return self.executor.task.id

    @property
    def done(self) -> bool:
        return self.runner.done()

    async def stop(self, timeout: float) -> None:
        """
        Raise the cancel token and wait for the executor to finish.

        If the executor is stuck in a side effect past `timeout`,
        the asyncio task is cancelled as a last resort.
        """
        self.executor.cancel()
        if self.runner.done():
            return

        done, _ = await asyncio.wait({self.runner}, timeout=max(0.0, timeout))
        if done:
            return

        logger.warning(
            "Executor task_id=%s did not stop within %.1fs; cancelling", self.task_id, timeout
        )
        self.runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self.runner


class TaskRegistry:
    """
    task id -> ExecutionHandle.

    Only the dispatcher mutates the registry (single writer).
    The lock keeps snapshot()/len() safe for readers in other threads (console /status).
    """

    def __init__(self, *, stop_timeout: float = 5.0) -> None:
        self._handles: dict[str, ExecutionHandle] = {}
        self._lock = threading.Lock()
        self._stop_timeout = float(stop_timeout)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._handles

    def get(self, task_id: str) -> ExecutionHandle | None:
        with self._lock:
            return self._handles.get(task_id)

    def snapshot(self) -> dict[str, ExecutionHandle]:
        with self._lock:
            return dict(self._handles)

    def insert(self, handle: ExecutionHandle) -> ExecutionHandle | None:
        """Store `handle` under its task id. Returns the handle it replaced, if any."""
        with self._lock:
            prior = self._handles.get(handle.task_id)
            self._handles[handle.task_id] = handle
        if prior is not None and not prior.done:
            logger.warning("Registry overwrote a live executor task_id=%s", handle.task_id)
        return prior

    async def cancel(self, task_id: str) -> bool:
        """
        Stop the executor registered under `task_id` and wait for it.

        Returns False when nothing live was registered. The entry itself stays
        until prune() (it is terminal by then).
        """
        handle = self.get(task_id)
        if handle is None or handle.done:
            return False
        await handle.stop(self._stop_timeout)
        logger.debug("Executor cancelled task_id=%s fired=%d", task_id, handle.executor.fired)
        return True

    def prune(self) -> int:
        """Drop handles whose executor has finished."""
        with self._lock:
            finished = [tid for tid, h in self._handles.items() if h.done]
            for tid in finished:
                del self._handles[tid]
        if finished:
            logger.debug("Registry pruned %d finished executors", len(finished))
        return len(finished)

    async def shutdown(self) -> None:
        handles = list(self.snapshot().values())
        for handle in handles:
            handle.executor.cancel()
        for handle in handles:
            await handle.stop(self._stop_timeout)
        with self._lock:
            self._handles.clear()
        if handles:
            logger.info("Registry shut down %d executors", len(handles))
