# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from job_scheduler.core.state import AppState
from job_scheduler.scheduler.task_api import JobApi
from job_scheduler.scheduler.task_store import InMemoryJobStore, SqliteJobStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """Minimal settings object compatible with AppState and the CLI commands."""
    return SimpleNamespace(
        app_name="job-scheduler-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        store_backend="memory",
        store_path=tmp_path / "jobs.sqlite3",
        todo_channel="todo-list",
        control_channel="running-list",
        poll_interval=0.05,
        stop_timeout=0.5,
        content_max_length=64,
    )


@pytest.fixture()
def memory_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture()
def sqlite_store(tmp_path: Path) -> SqliteJobStore:
    return SqliteJobStore(tmp_path / "jobs.sqlite3")


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path: Path):
    """Both JobStore adapters; behaviour must be identical."""
    if request.param == "memory":
        return InMemoryJobStore()
    return SqliteJobStore(tmp_path / "jobs.sqlite3")


@pytest.fixture()
def state(settings: SimpleNamespace, memory_store: InMemoryJobStore) -> AppState:
    """AppState wired with an in-memory store and no dispatcher thread."""
    return AppState(
        settings=settings,
        store=memory_store,
        api=JobApi(
            memory_store,
            todo_channel=settings.todo_channel,
            control_channel=settings.control_channel,
            content_max_length=settings.content_max_length,
        ),
    )
