# src/job_scheduler/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing required at import time; every variable has a default.
- Malformed numbers fall back to defaults instead of crashing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "JOBS"

STORE_BACKENDS = ("sqlite", "memory")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Store / queues ----
    data_dir: Path
    store_backend: str
    store_path: Path
    todo_channel: str
    control_channel: str

    # ---- Dispatcher ----
    poll_interval: float
    stop_timeout: float

    # ---- API layer ----
    content_max_length: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "job-scheduler").strip() or "job-scheduler"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/jobs"))
        store_backend = _env(_k("STORE_BACKEND"), "sqlite").strip().lower()
        if store_backend not in STORE_BACKENDS:
            store_backend = "sqlite"
        store_path = _env_path(_k("STORE_PATH"), data_dir / "jobs.sqlite3")
        todo_channel = _env(_k("TODO_CHANNEL"), "todo-list").strip() or "todo-list"
        control_channel = _env(_k("CONTROL_CHANNEL"), "running-list").strip() or "running-list"

        poll_interval = _env_float(_k("POLL_INTERVAL"), 10.0)
        if poll_interval <= 0:
            poll_interval = 10.0
        stop_timeout = max(0.0, _env_float(_k("STOP_TIMEOUT"), 5.0))

        content_max_length = _env_int(_k("CONTENT_MAX_LENGTH"), 64)
        if content_max_length <= 0:
            content_max_length = 64

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            store_backend=store_backend,
            store_path=store_path,
            todo_channel=todo_channel,
            control_channel=control_channel,
            poll_interval=poll_interval,
            stop_timeout=stop_timeout,
            content_max_length=content_max_length,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
