# src/job_scheduler/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the scheduler core.

The core depends on Protocols instead of concrete implementations.
This keeps the store/queue backend and the side-effect sink swappable and makes testing easier.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..scheduler.task_models import ExecutionEvent, TaskStatus


class JobStore(Protocol):
    """
    Keyed hash store plus named FIFO channels.

    Every method raises StoreUnavailable when the backend cannot be reached.
    """

    async def hash_set(self, key: str, fields: Mapping[str, str]) -> None: ...

    # Raises NotFound when the hash or the field does not exist.
    async def hash_get_field(self, key: str, field: str) -> str: ...

    # Empty dict for unknown keys.
    async def hash_get_all(self, key: str) -> dict[str, str]: ...

    async def queue_push(self, channel: str, entry: str) -> None: ...

    # Removes and returns everything queued at call time, oldest first.
    async def queue_drain(self, channel: str) -> list[str]: ...


class StatusReader(Protocol):
    """Read-only status accessor handed to executors."""

    async def read_status(self, task_id: str) -> TaskStatus: ...


class ExecutionSink(Protocol):
    """Where executors deliver the side effect of a firing."""

    async def emit(self, event: ExecutionEvent) -> None: ...
