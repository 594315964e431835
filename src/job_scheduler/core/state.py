# src/job_scheduler/core/state.py

from __future__ import annotations

import asyncio
import threading
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from ..scheduler.task_api import JobApi
from .ports import JobStore

if TYPE_CHECKING:
    from ..cli.runner import DispatcherBackgroundRunner

T = TypeVar("T")


@dataclass
class AppState:
    settings: Any
    store: JobStore
    api: JobApi

    # Set once the dispatcher thread is up; None in tests and one-off tools.
    runner: DispatcherBackgroundRunner | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)

    def call(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run a store/API coroutine from synchronous code (console thread)."""
        if self.runner is not None:
            return self.runner.call(coro)
        return asyncio.run(coro)
