"""
Run history — capped, newest-first list of CleaningReports in a key-value store.

The whole list lives as one JSON value under a single key and every write
replaces it. Unreadable or corrupt state reads as an empty history.
"""

import json
import logging
from typing import Dict, List, Optional

import redis
from pydantic import TypeAdapter, ValidationError

from cleanse_ai.config import settings
from cleanse_ai.exceptions import HistoryStoreError
from cleanse_ai.schemas.cleaning import CleaningReport, HistoryStats

logger = logging.getLogger(__name__)

_REPORTS = TypeAdapter(List[CleaningReport])

RECENT_RUNS = 7


class InMemoryStore:
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


class RedisStore:
    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise HistoryStoreError(f"Could not read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except redis.RedisError as e:
            raise HistoryStoreError(f"Could not write '{key}': {e}") from e

    def clear(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise HistoryStoreError(f"Could not delete '{key}': {e}") from e


class ReportHistory:
    def __init__(self, store, key: Optional[str] = None, limit: Optional[int] = None):
        self.store = store
        self.key = key or settings.HISTORY_KEY
        self.limit = limit or settings.HISTORY_LIMIT

    def entries(self) -> List[CleaningReport]:
        """Newest first. Anything unreadable is treated as no history."""
        try:
            raw = self.store.get(self.key)
        except HistoryStoreError as e:
            logger.warning(f"History unavailable, treating as empty: {e}")
            return []
        return self._decode(raw)

    def _decode(self, raw: Optional[str]) -> List[CleaningReport]:
        if not raw:
            return []
        try:
            return _REPORTS.validate_python(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Corrupt history under '{self.key}', treating as empty: {e}")
            return []

    def save(self, report: CleaningReport) -> None:
        """Prepend ``report``. A failed read raises HistoryStoreError and nothing is written."""
        existing = self._decode(self.store.get(self.key))
        updated = [report, *existing][: self.limit]
        self.store.set(self.key, _REPORTS.dump_json(updated).decode())

    def clear(self) -> None:
        self.store.clear(self.key)

    def stats(self) -> HistoryStats:
        history = self.entries()
        total_rows = sum(h.row_count for h in history)
        total_fixes = sum(h.total_changes for h in history)
        fix_rate = round(total_fixes / total_rows * 100, 1) if total_rows else 0.0
        return HistoryStats(
            runs=len(history),
            total_rows_cleaned=total_rows,
            total_fixes=total_fixes,
            fix_rate=fix_rate,
            recent=list(reversed(history[:RECENT_RUNS])),
        )


_history: Optional[ReportHistory] = None


def get_history() -> ReportHistory:
    """Process-wide history, backend chosen by HISTORY_BACKEND."""
    global _history
    if _history is None:
        if settings.HISTORY_BACKEND == "redis":
            if not settings.REDIS_URL:
                raise ValueError("HISTORY_BACKEND=redis requires REDIS_URL")
            store = RedisStore.from_url(settings.REDIS_URL)
        elif settings.HISTORY_BACKEND == "memory":
            store = InMemoryStore()
        else:
            raise ValueError(
                f"Unknown history backend: {settings.HISTORY_BACKEND}. Available: memory, redis"
            )
        _history = ReportHistory(store)
    return _history
