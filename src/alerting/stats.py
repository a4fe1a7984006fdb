"""StatsAggregator: cached snapshot of engine state for dashboards and the CLI."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from src.alerting.alert_log import AlertLog
from src.contracts.alert import AlertEvent, parse_ts, to_iso
from src.contracts.enums import INTEGRITY_KINDS, Severity
from src.shared.errors import GuardError

log = logging.getLogger(__name__)

_ALERT_HISTORY = 100
_VIOLATION_WINDOW_SEC = 24 * 3600


class _IntegritySource(Protocol):
    def status(self) -> dict[str, Any]: ...


class _BlockSource(Protocol):
    def block_stats(self) -> dict[str, int]: ...


class _BucketSource(Protocol):
    def bucket_counts(self) -> dict[tuple[str, str], int]: ...


def _unknown_integrity() -> dict[str, Any]:
    return {"status": "unknown", "last_check": None, "file_count": 0, "violations": []}


class AlertLogIntegrity:
    """Integrity status derived from the alert log.

    Used by processes that do not run the FileIntegrityMonitor themselves
    (the dashboard). Any integrity alert from the last 24 h marks the
    status ``violated``; a readable log without one is ``ok``; no log at
    all is ``unknown``. ``last_check`` is not recorded in the log.
    """

    def __init__(
        self,
        alert_log: AlertLog,
        *,
        file_count: int = 0,
        history: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.alert_log = alert_log
        self.file_count = file_count
        self.history = history
        self._clock = clock

    def status(self) -> dict[str, Any]:
        if not self.alert_log.path.exists():
            return _unknown_integrity() | {"file_count": self.file_count}
        cutoff = self._clock() - _VIOLATION_WINDOW_SEC
        violations = []
        for alert in self.alert_log.tail(self.history):
            if alert.pattern not in INTEGRITY_KINDS:
                continue
            try:
                ts = parse_ts(alert.timestamp).timestamp()
            except ValueError:
                continue
            if ts >= cutoff:
                violations.append(
                    {"timestamp": alert.timestamp, "pattern": alert.pattern,
                     "source": alert.source, "level": alert.level}
                )
        return {
            "status": "violated" if violations else "ok",
            "last_check": None,
            "file_count": self.file_count,
            "violations": violations,
        }


class StatsAggregator:
    def __init__(
        self,
        alert_log: AlertLog,
        *,
        integrity: _IntegritySource | None = None,
        guard: _BlockSource | None = None,
        patterns: _BucketSource | None = None,
        ttl: float = 10.0,
        recent: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.alert_log = alert_log
        self.integrity = integrity
        self.guard = guard
        self.patterns = patterns
        self.ttl = ttl
        self.recent = recent
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: dict[str, Any] | None = None
        self._cached_at = 0.0

    def invalidate(self, _alert: AlertEvent | None = None) -> None:
        """Drop the cached snapshot; usable as a dispatcher subscriber."""
        with self._lock:
            self._cached = None

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            now = self._clock()
            if self._cached is not None and now - self._cached_at < self.ttl:
                return self._cached
            previous = self._cached
            try:
                snapshot = self._collect()
            except (OSError, GuardError) as exc:
                log.error("Stats collection failed: %s", exc)
                if previous is not None:
                    return previous
                raise
            self._cached, self._cached_at = snapshot, now
            return snapshot

    # ── collection ───────────────────────────────────────────────────────

    def _collect(self) -> dict[str, Any]:
        history = self.alert_log.tail(_ALERT_HISTORY)

        by_level: dict[str, int] = {sev.value: 0 for sev in Severity}
        for alert in history:
            by_level[alert.level] = by_level.get(alert.level, 0) + 1
        by_level["total"] = len(history)

        patterns = Counter(alert.pattern for alert in history)
        recent = [
            {
                "timestamp": a.timestamp,
                "level": a.level,
                "pattern": a.pattern,
                "message": a.message,
                "source": a.source,
                "count": a.count,
            }
            for a in reversed(history[-self.recent:] if self.recent > 0 else [])
        ]

        integrity = self.integrity.status() if self.integrity else _unknown_integrity()
        brute = self.guard.block_stats() if self.guard else {"blocked_users": 0, "blocked_ips": 0}
        buckets = {
            f"{pattern}:{severity}": n
            for (pattern, severity), n in (self.patterns.bucket_counts() if self.patterns else {}).items()
        }

        return {
            "timestamp": to_iso(datetime.now(tz=UTC)),
            "alerts": by_level,
            "patterns": dict(patterns),
            "recent_alerts": recent,
            "integrity": integrity,
            "brute_force": {
                "blocked_ips": brute.get("blocked_ips", 0),
                "blocked_users": brute.get("blocked_users", 0),
            },
            "active_buckets": buckets,
        }
