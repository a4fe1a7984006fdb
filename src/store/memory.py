"""In-process CounterStore: bounded dict behind a mutex."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from src.contracts.block import CounterEntry
from src.shared.scheduler import PeriodicTask
from src.store.base import CounterStore

log = logging.getLogger(__name__)


class InMemoryStore(CounterStore):
    """Dict of CounterEntry with the same TTL semantics as the Redis store.

    Expired entries read as absent and are removed lazily; ``sweep``
    enforces the ``max_entries`` budget (expired first, then least
    recently updated).
    """

    def __init__(
        self,
        max_entries: int = 10000,
        sweep_interval_sec: float = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CounterEntry] = {}
        self._lock = threading.Lock()
        self._sweeper = PeriodicTask("memory-store-sweep", sweep_interval_sec, self.sweep)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── contract ─────────────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._live(key, now)
            return entry.value if entry else None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = CounterEntry(
                key=key, value=value, expires_at=now + ttl_seconds, last_updated=now
            )

    def increment(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        with self._lock:
            entry = self._live(key, now)
            if entry is None:
                entry = CounterEntry(key=key, value=0, expires_at=now + ttl_seconds, last_updated=now)
                self._entries[key] = entry
            entry.value = int(entry.value or 0) + 1
            entry.last_updated = now
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self, prefix: str) -> list[str]:
        now = self._clock()
        with self._lock:
            return [
                k for k, e in self._entries.items() if k.startswith(prefix) and not e.is_expired(now)
            ]

    # ── maintenance ──────────────────────────────────────────────────────

    def sweep(self) -> int:
        """Evict expired entries, then oldest entries beyond the budget."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
            removed = len(expired)

            overflow = len(self._entries) - self.max_entries
            if overflow > 0:
                oldest = sorted(self._entries.values(), key=lambda e: e.last_updated)[:overflow]
                for e in oldest:
                    del self._entries[e.key]
                removed += overflow
        if removed:
            log.info("Memory store sweep removed %d entries", removed)
        return removed

    def start(self) -> None:
        self._sweeper.start()

    def close(self) -> None:
        self._sweeper.stop()

    def _live(self, key: str, now: float) -> CounterEntry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(now):
            del self._entries[key]
            return None
        return entry
