from __future__ import annotations

from datetime import datetime, timezone

from app.core.config.scoring import get_scoring_int
from app.schemas.scoring import ComprehensiveScore, ScoreHistoryEntry


class ScoreHistory:
    """Bounded score history; the oldest entry drops out once it is full."""

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is None:
            max_entries = get_scoring_int("history.max_entries", 50)
        if max_entries <= 0:
            raise ValueError("max_entries must be greater than 0")
        self.max_entries = max_entries
        self._entries: list[ScoreHistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        score: ComprehensiveScore,
        *,
        step: int | None = None,
        timestamp: datetime | None = None,
    ) -> ScoreHistoryEntry:
        entry = ScoreHistoryEntry(
            timestamp=timestamp or datetime.now(timezone.utc),
            step=step,
            overall=score.overall,
            match_band=score.match_band,
            is_jd_mode=score.is_jd_mode,
        )
        self._entries.append(entry)
        if len(self._entries) > self.max_entries:
            del self._entries[: -self.max_entries]
        return entry

    def entries(self) -> list[ScoreHistoryEntry]:
        return list(self._entries)

    def latest(self) -> ScoreHistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def best(self) -> ScoreHistoryEntry | None:
        if not self._entries:
            return None
        # max() keeps the first of equal scores.
        return max(self._entries, key=lambda entry: entry.overall)

    def improvement(self) -> int:
        if len(self._entries) < 2:
            return 0
        return self._entries[-1].overall - self._entries[0].overall

    def clear(self) -> None:
        self._entries.clear()
