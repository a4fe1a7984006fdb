"""LogPatternMonitor: sliding-window pattern detection over security log files.

Pipeline per line
─────────────────
  raw line ─▶ message text (JSON ``message`` field, else the raw line)
           ─▶ every matching rule appends an occurrence to its bucket
           ─▶ bucket pruned to the rule window
           ─▶ threshold reached: AlertEvent emitted, bucket reset

Files are tailed by byte offset. On first sight only the last
``tail_lines`` complete lines are read; a file that shrinks is treated as
rotated and re-read from the start.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path

from src.contracts.alert import AlertEvent, EventOccurrence, to_iso
from src.contracts.rules import PatternRule
from src.monitor.watcher import DirectoryWatcher, PathEventHandler
from src.shared.scheduler import PeriodicTask

log = logging.getLogger(__name__)

AlertSink = Callable[[AlertEvent], object]
BucketKey = tuple[str, str]


def extract_message(line: str) -> str:
    """Text to match rules against: a JSON object's ``message`` or the raw line."""
    try:
        obj = json.loads(line)
    except ValueError:
        return line
    if isinstance(obj, dict) and isinstance(obj.get("message"), str):
        return obj["message"]
    return line


class LogPatternMonitor:
    def __init__(
        self,
        rules: Iterable[PatternRule],
        on_alert: AlertSink | None = None,
        *,
        logs_dir: str | Path | None = None,
        log_glob: str = "*.log",
        tail_lines: int = 10,
        exclude: Iterable[str | Path] = (),
        prune_interval: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rules = list(rules)
        self._on_alert = on_alert
        self.logs_dir = Path(logs_dir) if logs_dir is not None else None
        self.log_glob = log_glob
        self.tail_lines = tail_lines
        self._exclude = {Path(p).resolve() for p in exclude}
        self._clock = clock

        self._lock = threading.RLock()
        self._buckets: dict[BucketKey, deque[tuple[float, EventOccurrence]]] = {}
        self._offsets: dict[Path, int] = {}

        self._watcher = DirectoryWatcher("log-pattern-watcher")
        self._pruner = PeriodicTask("log-pattern-prune", prune_interval, self.prune)

    @property
    def rules(self) -> list[PatternRule]:
        return list(self._rules)

    # ═══════════════════════════════════════════════════════════════════════
    #  Detection
    # ═══════════════════════════════════════════════════════════════════════

    def process_line(self, line: str, source: str = "") -> list[AlertEvent]:
        """Match one line against every rule; emit and return raised alerts."""
        message = extract_message(line)
        now = self._clock()
        stamp = to_iso(datetime.fromtimestamp(now, tz=UTC))
        raised: list[AlertEvent] = []

        with self._lock:
            for rule in self._rules:
                if not rule.matches(message):
                    continue
                bucket = self._buckets.setdefault(rule.bucket_key, deque())
                bucket.append((now, EventOccurrence(timestamp=stamp, message=message, source=source)))
                cutoff = now - rule.time_window_seconds
                while bucket and bucket[0][0] <= cutoff:
                    bucket.popleft()

                if len(bucket) >= rule.threshold:
                    count = len(bucket)
                    raised.append(
                        AlertEvent(
                            timestamp=stamp,
                            level=rule.severity,
                            pattern=rule.pattern,
                            count=count,
                            time_window_seconds=rule.time_window_seconds,
                            message=(
                                f"Suspicious pattern detected: {rule.pattern} "
                                f"({count} occurrences in {rule.time_window_seconds}s)"
                            ),
                            source=source,
                            occurrences=tuple(occ.truncated() for _, occ in bucket),
                        )
                    )
                    bucket.clear()

        for alert in raised:
            self._emit(alert)
        return raised

    def _emit(self, alert: AlertEvent) -> None:
        if self._on_alert is None:
            return
        try:
            self._on_alert(alert)
        except Exception:
            log.exception("Pattern alert '%s' could not be dispatched", alert.pattern)

    # ═══════════════════════════════════════════════════════════════════════
    #  Files
    # ═══════════════════════════════════════════════════════════════════════

    def is_excluded(self, path: str | Path) -> bool:
        return Path(path).resolve() in self._exclude

    def scan_file(self, path: str | Path) -> list[AlertEvent]:
        """Feed lines appended to *path* since the last scan through the rules."""
        p = Path(path)
        key = p.resolve()
        if key in self._exclude:
            return []
        try:
            lines = self._read_new_lines(key)
        except OSError as exc:
            log.error("Cannot read log file %s: %s", p, exc)
            return []

        raised: list[AlertEvent] = []
        for line in lines:
            if line.strip():
                raised.extend(self.process_line(line, str(p)))
        return raised

    def _read_new_lines(self, key: Path) -> list[str]:
        with self._lock, key.open("rb") as fh:
            size = fh.seek(0, 2)
            offset = self._offsets.get(key)
            first_sight = offset is None
            if offset is None or size < offset:
                if offset is not None:
                    log.info("Log file %s shrank (%d -> %d bytes), re-reading", key, offset, size)
                offset = 0
            fh.seek(offset)
            data = fh.read()

            end = data.rfind(b"\n")
            if end < 0:
                # no complete line yet
                self._offsets[key] = offset
                return []
            self._offsets[key] = offset + end + 1

        lines = data[: end + 1].decode("utf-8", errors="replace").splitlines()
        if first_sight:
            lines = lines[-self.tail_lines:] if self.tail_lines > 0 else []
        return lines

    def forget_file(self, path: str | Path) -> None:
        with self._lock:
            self._offsets.pop(Path(path).resolve(), None)

    # ═══════════════════════════════════════════════════════════════════════
    #  Maintenance
    # ═══════════════════════════════════════════════════════════════════════

    def prune(self) -> int:
        """Drop expired occurrences and empty buckets; returns occurrences removed."""
        now = self._clock()
        windows = {r.bucket_key: r.time_window_seconds for r in self._rules}
        removed = 0
        with self._lock:
            for key in list(self._buckets):
                bucket = self._buckets[key]
                cutoff = now - windows.get(key, 0)
                while bucket and bucket[0][0] <= cutoff:
                    bucket.popleft()
                    removed += 1
                if not bucket:
                    del self._buckets[key]
        if removed:
            log.debug("Pruned %d expired pattern occurrence(s)", removed)
        return removed

    def bucket_counts(self) -> dict[BucketKey, int]:
        with self._lock:
            return {key: len(bucket) for key, bucket in self._buckets.items() if bucket}

    # ═══════════════════════════════════════════════════════════════════════
    #  Lifecycle
    # ═══════════════════════════════════════════════════════════════════════

    def _accepts(self, path: Path) -> bool:
        return path.match(self.log_glob) and not self.is_excluded(path)

    def start(self) -> None:
        if self.logs_dir is None:
            raise ValueError("logs_dir is required to start watching")
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        for path in sorted(self.logs_dir.glob(self.log_glob)):
            if path.is_file() and not self.is_excluded(path):
                self.scan_file(path)

        handler = PathEventHandler(on_change=self.scan_file, on_delete=self.forget_file,
                                   accept=self._accepts)
        self._watcher.watch(self.logs_dir, handler)
        self._watcher.start()
        self._pruner.start()
        log.info("Log pattern monitor started: %s/%s, %d rule(s)",
                 self.logs_dir, self.log_glob, len(self._rules))

    def stop(self) -> None:
        self._watcher.stop()
        self._pruner.stop()
