# src/job_scheduler/scheduler/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
from collections import deque
from collections.abc import Mapping
from pathlib import Path

from .errors import NotFound, StoreUnavailable
from .task_models import FIELD_STATUS, TaskStatus

logger = logging.getLogger(__name__)


class InMemoryJobStore:
    """
    Process-local JobStore.

    Hashes are plain dicts, channels are deques. A single asyncio.Lock serializes access,
    so an instance must only be used from the event loop that first awaited it.
    """

    def __init__(self) -> None:
        self._hashes: dict[str, dict[str, str]] = {}
        self._queues: dict[str, deque[str]] = {}
        self._lock = asyncio.Lock()

    async def hash_set(self, key: str, fields: Mapping[str, str]) -> None:
        async with self._lock:
            self._hashes.setdefault(key, {}).update({k: str(v) for k, v in fields.items()})

    async def hash_get_field(self, key: str, field: str) -> str:
        async with self._lock:
            try:
                return self._hashes[key][field]
            except KeyError:
                raise NotFound(key, field) from None

    async def hash_get_all(self, key: str) -> dict[str, str]:
        async with self._lock:
            return dict(self._hashes.get(key, {}))

    async def queue_push(self, channel: str, entry: str) -> None:
        async with self._lock:
            self._queues.setdefault(channel, deque()).append(entry)

    async def queue_drain(self, channel: str) -> list[str]:
        async with self._lock:
            queue = self._queues.get(channel)
            if not queue:
                return []
            out = list(queue)
            queue.clear()
            return out


class SqliteJobStore:
    """
    SQLite-backed JobStore.

    Layout:
    - job_fields(key, field, value): one row per hash field
    - queue_entries(seq, channel, entry): FIFO channels ordered by seq

    Thread-safety:
    - each call opens its own SQLite connection
    - blocking work runs in a worker thread (asyncio.to_thread)
    """

    def __init__(self, db_path: str | Path = "jobs.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._ensure_schema()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"cannot open store at {self._db_path}: {e}") from e
        logger.info("SqliteJobStore ready db=%s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS job_fields (
                    key TEXT NOT NULL,
                    field TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (key, field)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS queue_entries (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    channel TEXT NOT NULL,
                    entry TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_queue_channel ON queue_entries(channel, seq)")
            conn.commit()
        finally:
            conn.close()

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.debug("SQLite call %s failed", getattr(fn, "__name__", fn), exc_info=True)
            raise StoreUnavailable(str(e)) from e

    # ---- blocking implementations ----

    def _hash_set(self, key: str, fields: Mapping[str, str]) -> None:
        conn = self._get_conn()
        try:
            conn.executemany(
                """
                INSERT INTO job_fields(key, field, value) VALUES (?, ?, ?)
                ON CONFLICT(key, field) DO UPDATE SET value = excluded.value
                """,
                [(key, f, str(v)) for f, v in fields.items()],
            )
            conn.commit()
        finally:
            conn.close()

    def _hash_get_field(self, key: str, field: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT value FROM job_fields WHERE key = ? AND field = ?", (key, field)
            ).fetchone()
            return None if row is None else str(row[0])
        finally:
            conn.close()

    def _hash_get_all(self, key: str) -> dict[str, str]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT field, value FROM job_fields WHERE key = ?", (key,)).fetchall()
            return {str(f): str(v) for f, v in rows}
        finally:
            conn.close()

    def _queue_push(self, channel: str, entry: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("INSERT INTO queue_entries(channel, entry) VALUES (?, ?)", (channel, entry))
            conn.commit()
        finally:
            conn.close()

    def _queue_drain(self, channel: str) -> list[str]:
        conn = self._get_conn()
        try:
            # IMMEDIATE takes the write lock up front so a concurrent push lands
            # either fully before (drained now) or after (drained next time).
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                "SELECT seq, entry FROM queue_entries WHERE channel = ? ORDER BY seq ASC",
                (channel,),
            ).fetchall()
            if rows:
                conn.execute(
                    "DELETE FROM queue_entries WHERE channel = ? AND seq <= ?",
                    (channel, int(rows[-1][0])),
                )
            conn.commit()
            return [str(entry) for _, entry in rows]
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---- JobStore API ----

    async def hash_set(self, key: str, fields: Mapping[str, str]) -> None:
        if fields:
            await self._run(self._hash_set, key, dict(fields))

    async def hash_get_field(self, key: str, field: str) -> str:
        value = await self._run(self._hash_get_field, key, field)
        if value is None:
            raise NotFound(key, field)
        return value

    async def hash_get_all(self, key: str) -> dict[str, str]:
        return await self._run(self._hash_get_all, key)

    async def queue_push(self, channel: str, entry: str) -> None:
        await self._run(self._queue_push, channel, entry)

    async def queue_drain(self, channel: str) -> list[str]:
        return await self._run(self._queue_drain, channel)


class StoreStatusReader:
    """Read-only status accessor over a JobStore (the only thing executors see)."""

    def __init__(self, store) -> None:
        self._store = store

    async def read_status(self, task_id: str) -> TaskStatus:
        raw = await self._store.hash_get_field(task_id, FIELD_STATUS)
        return TaskStatus.from_store(raw)
