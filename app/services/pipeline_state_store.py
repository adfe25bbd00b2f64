from __future__ import annotations

import logging
import os
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from pydantic import ValidationError

from app.core.config import settings
from app.core.config.scoring import get_scoring_int
from app.schemas.pipeline import PipelineExecutionContext, PipelineState, StorageStats

logger = logging.getLogger(__name__)

SESSION_PREFIX = "resume_pipeline:session:"
SNAPSHOT_PREFIX = "resume_pipeline:snapshot:"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        """Return the stored value or None."""

    def set(self, key: str, value: str) -> None:
        """Overwrite the value stored under key."""

    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored."""

    def keys(self, prefix: str = "") -> list[str]:
        """Return every key starting with prefix."""


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._data if key.startswith(prefix))


class SqliteKeyValueStore:
    """Single-table key-value store; writes are serialised per process by a connection lock."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        with self._conn_lock:
            if self._conn is not None:
                return self._conn

            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=5,
                isolation_level=None,
            )
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_records (
                    record_key TEXT PRIMARY KEY,
                    record_value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            self._conn = conn
            return conn

    def get(self, key: str) -> str | None:
        conn = self._get_connection()
        with self._conn_lock:
            row = conn.execute("SELECT record_value FROM kv_records WHERE record_key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        conn = self._get_connection()
        with self._conn_lock:
            conn.execute(
                """
                INSERT INTO kv_records (record_key, record_value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(record_key) DO UPDATE SET
                    record_value = excluded.record_value,
                    updated_at = excluded.updated_at
                """,
                (key, value, _utc_now().isoformat()),
            )

    def delete(self, key: str) -> None:
        conn = self._get_connection()
        with self._conn_lock:
            conn.execute("DELETE FROM kv_records WHERE record_key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        conn = self._get_connection()
        with self._conn_lock:
            rows = conn.execute(
                "SELECT record_key FROM kv_records WHERE substr(record_key, 1, ?) = ? ORDER BY record_key",
                (len(prefix), prefix),
            ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        with self._conn_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def build_key_value_store() -> KeyValueStore:
    if settings.pipeline_store_backend == "memory":
        return InMemoryKeyValueStore()
    return SqliteKeyValueStore(settings.pipeline_db_path)


# Datetimes become ISO-8601 text only here.
def serialize_context(context: PipelineExecutionContext) -> str:
    return context.model_dump_json()


def deserialize_context(raw: str) -> PipelineExecutionContext:
    return PipelineExecutionContext.model_validate_json(raw)


def serialize_state(state: PipelineState) -> str:
    return state.model_dump_json()


def deserialize_state(raw: str) -> PipelineState:
    return PipelineState.model_validate_json(raw)


class PipelineStateStore:
    """Persists pipeline contexts and progress snapshots in an injected key-value backend.

    Writes are whole-record overwrites, so two writers on one session id are last-write-wins.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        max_sessions: int | None = None,
        resumable_hours: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.max_sessions = max_sessions or get_scoring_int("pipeline.max_stored_sessions", 10)
        self.resumable_hours = resumable_hours or get_scoring_int("pipeline.resumable_hours", 24)
        self._clock = clock or _utc_now

    def save_context(self, context: PipelineExecutionContext) -> None:
        self.backend.set(SESSION_PREFIX + context.session_id, serialize_context(context))
        self.cleanup_old_sessions()

    def load_context(self, session_id: str) -> PipelineExecutionContext | None:
        raw = self.backend.get(SESSION_PREFIX + session_id)
        if raw is None:
            return None
        try:
            return deserialize_context(raw)
        except ValidationError as exc:
            logger.warning("pipeline_context_corrupt session=%s error=%s", session_id, exc)
            return None

    def delete_context(self, session_id: str) -> None:
        self.backend.delete(SESSION_PREFIX + session_id)
        self.backend.delete(SNAPSHOT_PREFIX + session_id)

    def save_snapshot(self, state: PipelineState) -> None:
        self.backend.set(SNAPSHOT_PREFIX + state.session_id, serialize_state(state))

    def load_snapshot(self, session_id: str) -> PipelineState | None:
        raw = self.backend.get(SNAPSHOT_PREFIX + session_id)
        if raw is None:
            return None
        try:
            return deserialize_state(raw)
        except ValidationError as exc:
            logger.warning("pipeline_snapshot_corrupt session=%s error=%s", session_id, exc)
            return None

    def _all_contexts(self) -> list[PipelineExecutionContext]:
        contexts = []
        for key in self.backend.keys(SESSION_PREFIX):
            context = self.load_context(key[len(SESSION_PREFIX):])
            if context is not None:
                contexts.append(context)
        return sorted(contexts, key=lambda item: item.start_time, reverse=True)

    def get_user_sessions(self, user_id: str) -> list[PipelineExecutionContext]:
        return [context for context in self._all_contexts() if context.user_id == user_id]

    def _is_resumable(self, context: PipelineExecutionContext) -> bool:
        return self._clock() - context.start_time < timedelta(hours=self.resumable_hours)

    def can_resume(self, session_id: str) -> bool:
        context = self.load_context(session_id)
        return context is not None and self._is_resumable(context)

    def get_resumable_sessions(self, user_id: str) -> list[PipelineExecutionContext]:
        return [context for context in self.get_user_sessions(user_id) if self._is_resumable(context)]

    def cleanup_old_sessions(self) -> list[str]:
        """Keep the newest sessions by start time and delete the rest."""
        evicted = [context.session_id for context in self._all_contexts()[self.max_sessions:]]
        for session_id in evicted:
            self.delete_context(session_id)
            logger.info("pipeline_session_evicted session=%s", session_id)
        return evicted

    def purge_expired_sessions(self) -> list[str]:
        expired = [context.session_id for context in self._all_contexts() if not self._is_resumable(context)]
        for session_id in expired:
            self.delete_context(session_id)
            logger.info("pipeline_session_expired session=%s", session_id)
        return expired

    def clear_user_data(self, user_id: str) -> int:
        sessions = self.get_user_sessions(user_id)
        for context in sessions:
            self.delete_context(context.session_id)
        return len(sessions)

    def get_storage_stats(self) -> StorageStats:
        session_keys = self.backend.keys(SESSION_PREFIX)
        snapshot_keys = self.backend.keys(SNAPSHOT_PREFIX)
        total_bytes = 0
        for key in session_keys + snapshot_keys:
            value = self.backend.get(key)
            if value is not None:
                total_bytes += len(value.encode("utf-8"))
        contexts = self._all_contexts()
        return StorageStats(
            session_count=len(session_keys),
            snapshot_count=len(snapshot_keys),
            total_bytes=total_bytes,
            oldest_start_time=contexts[-1].start_time if contexts else None,
            newest_start_time=contexts[0].start_time if contexts else None,
        )
