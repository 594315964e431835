# src/job_scheduler/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store adapter, the API helper and the dispatcher.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import JobStore
from ..core.state import AppState
from ..scheduler.task_api import JobApi
from ..scheduler.task_dispatcher import Dispatcher
from ..scheduler.task_store import InMemoryJobStore, SqliteJobStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)


def create_store(settings) -> JobStore:
    if settings.store_backend == "memory":
        logger.info("Using in-memory store (jobs are lost on exit).")
        return InMemoryJobStore()
    return SqliteJobStore(settings.store_path)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = create_store(settings)
    api = JobApi(
        store,
        todo_channel=settings.todo_channel,
        control_channel=settings.control_channel,
        content_max_length=settings.content_max_length,
    )
    return AppState(settings=settings, store=store, api=api)


def create_dispatcher(state: AppState) -> Dispatcher:
    settings = state.settings
    return Dispatcher(
        state.store,
        poll_interval=settings.poll_interval,
        todo_channel=settings.todo_channel,
        control_channel=settings.control_channel,
        stop_timeout=settings.stop_timeout,
    )
