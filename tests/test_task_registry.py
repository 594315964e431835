# tests/test_task_registry.py

from __future__ import annotations

import asyncio

import pytest

from job_scheduler.scheduler.task_executor import TaskExecutor
from job_scheduler.scheduler.task_models import ScheduleType, Task, TaskStatus
from job_scheduler.scheduler.task_registry import ExecutionHandle, TaskRegistry

from .fakes import TEST_UNIT, BlockingSink, RecordingSink, ScriptedStatusReader


def _spawn(task_id: str, sink, *, duration: int = 1000, schedule_type=ScheduleType.REPEATED) -> ExecutionHandle:
    task = Task(id=task_id, content="c", schedule_type=schedule_type, duration=duration, slot=0)
    reader = ScriptedStatusReader({task_id: TaskStatus.RUNNING})
    executor = TaskExecutor(task, reader, sink, seconds_per_unit=TEST_UNIT)
    return ExecutionHandle(executor=executor, runner=asyncio.create_task(executor.run()))


@pytest.mark.asyncio
async def test_insert_overwrites_and_returns_prior() -> None:
    registry = TaskRegistry(stop_timeout=0.5)
    first = _spawn("a", RecordingSink())
    second = _spawn("a", RecordingSink())

    assert registry.insert(first) is None
    assert registry.insert(second) is first
    assert registry.get("a") is second
    assert len(registry) == 1
    assert "a" in registry

    # insert() alone does not stop the replaced executor; the dispatcher cancels first.
    assert not first.done

    await registry.shutdown()
    assert second.done
    await first.stop(timeout=0.5)
    assert first.done


@pytest.mark.asyncio
async def test_cancel_stops_live_executor() -> None:
    registry = TaskRegistry(stop_timeout=0.5)
    handle = _spawn("a", RecordingSink())
    registry.insert(handle)

    assert await registry.cancel("a") is True
    assert handle.done
    assert handle.executor.is_terminal
    assert handle.executor.stop_reason == "cancelled"

    # already finished / unknown ids are no-ops
    assert await registry.cancel("a") is False
    assert await registry.cancel("missing") is False


@pytest.mark.asyncio
async def test_prune_drops_finished_handles_only() -> None:
    registry = TaskRegistry(stop_timeout=0.5)
    finished = _spawn("done", RecordingSink(), duration=1, schedule_type=ScheduleType.ONE_SHOT)
    live = _spawn("live", RecordingSink())
    registry.insert(finished)
    registry.insert(live)

    await asyncio.wait_for(finished.runner, timeout=1.0)

    assert registry.prune() == 1
    assert "done" not in registry
    assert "live" in registry

    await registry.shutdown()
    assert len(registry) == 0
    assert live.done


@pytest.mark.asyncio
async def test_stuck_side_effect_is_force_cancelled_after_timeout() -> None:
    registry = TaskRegistry(stop_timeout=0.05)
    sink = BlockingSink()
    handle = _spawn("stuck", sink, duration=1)
    registry.insert(handle)

    await asyncio.wait_for(sink.entered.wait(), timeout=1.0)
    assert await registry.cancel("stuck") is True

    assert handle.runner.cancelled()
    assert handle.executor.is_terminal


@pytest.mark.asyncio
async def test_snapshot_is_a_copy() -> None:
    registry = TaskRegistry()
    handle = _spawn("a", RecordingSink())
    registry.insert(handle)

    snap = registry.snapshot()
    snap.clear()

    assert "a" in registry
    await registry.shutdown()
