import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.pipeline import (  # noqa: E402
    PipelineExecutionContext,
    PipelineState,
    PipelineStep,
)
from app.services.pipeline_state_store import (  # noqa: E402
    SESSION_PREFIX,
    InMemoryKeyValueStore,
    PipelineStateStore,
    SqliteKeyValueStore,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _context(session_id: str, user_id: str = "user-1", *, hours_ago: float = 0) -> PipelineExecutionContext:
    return PipelineExecutionContext(
        session_id=session_id,
        user_id=user_id,
        job_description="Backend engineer with Python",
        current_step=PipelineStep.ANALYZE_AGAINST_JD,
        completed_steps=[PipelineStep.PARSE_RESUME],
        start_time=NOW - timedelta(hours=hours_ago),
    )


def _state(session_id: str) -> PipelineState:
    return PipelineState(
        session_id=session_id,
        user_id="user-1",
        current_step=PipelineStep.ANALYZE_AGAINST_JD,
        completed_steps=[PipelineStep.PARSE_RESUME],
        progress=15,
        start_time=NOW,
        updated_at=NOW,
    )


class PipelineStateStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = PipelineStateStore(InMemoryKeyValueStore(), clock=lambda: NOW)

    def test_context_round_trip(self):
        context = _context("s1")
        self.store.save_context(context)
        self.assertEqual(self.store.load_context("s1"), context)
        self.assertIsNone(self.store.load_context("missing"))

    def test_corrupt_context_loads_as_none(self):
        self.store.backend.set(SESSION_PREFIX + "broken", "{not json")
        with self.assertLogs("app.services.pipeline_state_store", level="WARNING"):
            self.assertIsNone(self.store.load_context("broken"))
        self.assertFalse(self.store.can_resume("broken"))

    def test_keeps_only_newest_sessions(self):
        for index in range(11):
            self.store.save_context(_context(f"s{index}", hours_ago=11 - index))
        stats = self.store.get_storage_stats()
        self.assertEqual(stats.session_count, 10)
        self.assertIsNone(self.store.load_context("s0"))
        self.assertIsNotNone(self.store.load_context("s10"))
        self.assertEqual(stats.newest_start_time, NOW - timedelta(hours=1))
        self.assertEqual(stats.oldest_start_time, NOW - timedelta(hours=10))

    def test_resumable_window(self):
        self.store.save_context(_context("fresh", hours_ago=2))
        self.store.save_context(_context("stale", hours_ago=30))
        self.store.save_context(_context("other", user_id="user-2", hours_ago=1))
        self.assertTrue(self.store.can_resume("fresh"))
        self.assertFalse(self.store.can_resume("stale"))
        self.assertEqual([c.session_id for c in self.store.get_user_sessions("user-1")], ["fresh", "stale"])
        self.assertEqual([c.session_id for c in self.store.get_resumable_sessions("user-1")], ["fresh"])

        self.assertEqual(self.store.purge_expired_sessions(), ["stale"])
        self.assertIsNone(self.store.load_context("stale"))

    def test_clear_user_data_and_snapshots(self):
        self.store.save_context(_context("a"))
        self.store.save_context(_context("b", hours_ago=1))
        self.store.save_context(_context("c", user_id="user-2"))
        self.store.save_snapshot(_state("a"))
        self.assertEqual(self.store.load_snapshot("a").progress, 15)
        self.assertEqual(self.store.get_storage_stats().snapshot_count, 1)

        self.assertEqual(self.store.clear_user_data("user-1"), 2)
        self.assertIsNone(self.store.load_snapshot("a"))
        self.assertEqual(self.store.get_storage_stats().session_count, 1)
        self.assertEqual(self.store.clear_user_data("nobody"), 0)

    def test_delete_context_removes_snapshot(self):
        self.store.save_context(_context("s1"))
        self.store.save_snapshot(_state("s1"))
        self.store.delete_context("s1")
        self.assertIsNone(self.store.load_context("s1"))
        self.assertIsNone(self.store.load_snapshot("s1"))

    def test_empty_store_stats(self):
        stats = self.store.get_storage_stats()
        self.assertEqual(stats.session_count, 0)
        self.assertEqual(stats.total_bytes, 0)
        self.assertIsNone(stats.oldest_start_time)


class SqliteKeyValueStoreTests(unittest.TestCase):
    def test_round_trip_through_sqlite(self):
        with tempfile.TemporaryDirectory() as tmp:
            backend = SqliteKeyValueStore(str(Path(tmp) / "nested" / "state.db"))
            try:
                store = PipelineStateStore(backend, clock=lambda: NOW)
                context = _context("s1")
                store.save_context(context)
                store.save_snapshot(_state("s1"))
                self.assertEqual(store.load_context("s1"), context)
                self.assertEqual(sorted(backend.keys()), sorted(backend.keys("resume_pipeline:")))
                self.assertEqual(len(backend.keys()), 2)

                backend.set("plain", "one")
                backend.set("plain", "two")
                self.assertEqual(backend.get("plain"), "two")
                backend.delete("plain")
                self.assertIsNone(backend.get("plain"))
                self.assertGreater(store.get_storage_stats().total_bytes, 0)
            finally:
                backend.close()


if __name__ == "__main__":
    unittest.main()
