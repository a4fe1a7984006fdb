"""FileIntegrityMonitor: SHA-256 baselines and change detection for critical files.

Entry lifecycle
───────────────
  unknown ──first hash──▶ baselined ──hash differs──▶ violation alert, new baseline
  baselined ──delete event──▶ missing (file_deletion, critical)
  baselined ──sweep finds it gone──▶ missing (file_missing, critical, once)
  missing ──reappears──▶ compared against the last known hash
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.contracts.alert import AlertEvent, EventOccurrence, to_iso
from src.contracts.enums import INTEGRITY_KINDS, AlertKind, Severity
from src.contracts.rules import CriticalFile, FileWatchEntry
from src.monitor.watcher import DirectoryWatcher, PathEventHandler
from src.shared.errors import FileAccessError
from src.shared.scheduler import PeriodicTask

log = logging.getLogger(__name__)

AlertSink = Callable[[AlertEvent], object]

_CHUNK = 64 * 1024
_VIOLATION_WINDOW_SEC = 24 * 3600
_GLOB_CHARS = frozenset("*?[")


def sha256_file(path: Path) -> str:
    """Hex SHA-256 of *path*; raises FileAccessError if it cannot be read."""
    digest = hashlib.sha256()
    try:
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK), b""):
                digest.update(chunk)
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise FileAccessError(str(path), exc.strerror or str(exc)) from exc
    return digest.hexdigest()


class FileIntegrityMonitor:
    def __init__(
        self,
        critical_files: Iterable[CriticalFile],
        on_alert: AlertSink | None = None,
        *,
        root: str | Path = ".",
        interval_sec: float = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._configured = list(critical_files)
        self._on_alert = on_alert
        self.root = Path(root)
        self._clock = clock

        self._lock = threading.RLock()
        self._entries: dict[Path, FileWatchEntry] = {}
        self._violations: deque[tuple[float, AlertEvent]] = deque()
        self._last_check: str | None = None

        self._watcher = DirectoryWatcher("integrity-watcher")
        self._sweeper = PeriodicTask("integrity-sweep", interval_sec, self.verify_all)

    # ── configuration ────────────────────────────────────────────────────

    def monitored_files(self) -> list[CriticalFile]:
        return list(self._configured)

    def entries(self) -> dict[str, FileWatchEntry]:
        with self._lock:
            return {str(p): e for p, e in self._entries.items()}

    def _resolve(self, path: str | Path) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.root / p
        return p.resolve()

    def _expand(self) -> list[tuple[Path, str]]:
        out: list[tuple[Path, str]] = []
        for cf in self._configured:
            if _GLOB_CHARS & set(cf.path):
                matches = sorted(m for m in self.root.glob(cf.path) if m.is_file())
                if not matches:
                    log.debug("Critical file pattern %s matched nothing", cf.path)
                out.extend((m.resolve(), cf.severity) for m in matches)
            else:
                out.append((self._resolve(cf.path), cf.severity))
        return out

    def _severity_for(self, path: Path) -> str:
        for cf in self._configured:
            if path.match(cf.path) or str(path).endswith(cf.path):
                return cf.severity
        return Severity.CRITICAL.value

    # ═══════════════════════════════════════════════════════════════════════
    #  Checks
    # ═══════════════════════════════════════════════════════════════════════

    def baseline(self) -> int:
        """Hash every configured path that exists; returns the number hashed."""
        hashed = 0
        pending: list[AlertEvent] = []
        with self._lock:
            for path, severity in self._expand():
                entry = self._entries.setdefault(path, FileWatchEntry(path=str(path), severity=severity))
                if not path.exists():
                    continue
                try:
                    entry.last_hash = sha256_file(path)
                except FileNotFoundError:
                    continue
                except FileAccessError as exc:
                    pending.append(self._access_error_alert(path, exc))
                    continue
                entry.last_checked_at = self._now_iso()
                entry.missing = False
                hashed += 1
        for alert in pending:
            self._emit(alert)
        log.info("Integrity baseline: %d of %d critical file(s) hashed", hashed, len(self._entries))
        return hashed

    def check_file(self, path: str | Path) -> bool:
        """Re-hash *path*; False when a violation or read error was raised."""
        p = self._resolve(path)
        alert: AlertEvent | None = None
        with self._lock:
            entry = self._entries.get(p)
            if entry is None:
                entry = FileWatchEntry(path=str(p), severity=self._severity_for(p))
                self._entries[p] = entry
            try:
                new_hash = sha256_file(p)
            except FileNotFoundError:
                return True
            except FileAccessError as exc:
                alert = self._access_error_alert(p, exc)
            else:
                old_hash = entry.last_hash
                entry.last_hash = new_hash
                entry.last_checked_at = self._now_iso()
                entry.missing = False
                if old_hash is not None and old_hash != new_hash:
                    alert = self._violation_alert(entry, old_hash, new_hash)
        if alert is None:
            return True
        self._emit(alert)
        return False

    def handle_deleted(self, path: str | Path) -> AlertEvent | None:
        p = self._resolve(path)
        with self._lock:
            entry = self._entries.get(p)
            if entry is None or entry.missing:
                return None
            entry.missing = True
            alert = self._simple_alert(
                AlertKind.FILE_DELETION, Severity.CRITICAL.value, p, f"Critical file deleted: {p}"
            )
        self._emit(alert)
        return alert

    def verify_all(self) -> int:
        """Full sweep over every known entry; returns the number of problems found."""
        problems = 0
        with self._lock:
            for path, severity in self._expand():
                self._entries.setdefault(path, FileWatchEntry(path=str(path), severity=severity))
            paths = list(self._entries)

        for path in paths:
            if path.exists():
                if not self.check_file(path):
                    problems += 1
                continue
            with self._lock:
                entry = self._entries[path]
                if entry.last_hash is None or entry.missing:
                    continue
                entry.missing = True
                alert = self._simple_alert(
                    AlertKind.FILE_MISSING, Severity.CRITICAL.value, path, f"Critical file not found: {path}"
                )
            self._emit(alert)
            problems += 1

        with self._lock:
            self._last_check = self._now_iso()
        log.info("Integrity check finished: %d problem(s) across %d file(s)", problems, len(paths))
        return problems

    def status(self) -> dict[str, Any]:
        cutoff = self._clock() - _VIOLATION_WINDOW_SEC
        with self._lock:
            while self._violations and self._violations[0][0] < cutoff:
                self._violations.popleft()
            recent = [
                {"timestamp": a.timestamp, "pattern": a.pattern, "source": a.source, "level": a.level}
                for _, a in self._violations
            ]
            if self._last_check is None:
                state = "unknown"
            else:
                state = "violated" if recent else "ok"
            return {
                "status": state,
                "last_check": self._last_check,
                "file_count": len(self._entries),
                "violations": recent,
            }

    # ── alerts ───────────────────────────────────────────────────────────

    def _now_iso(self) -> str:
        return to_iso(datetime.fromtimestamp(self._clock(), tz=UTC))

    def _simple_alert(
        self,
        kind: AlertKind,
        level: str,
        path: Path,
        message: str,
        occurrence: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AlertEvent:
        stamp = self._now_iso()
        return AlertEvent(
            timestamp=stamp,
            level=level,
            pattern=kind.value,
            count=1,
            time_window_seconds=0,
            message=message,
            source=str(path),
            occurrences=(EventOccurrence(timestamp=stamp, message=occurrence or message, source=str(path)),),
            details=details or {},
        )

    def _violation_alert(self, entry: FileWatchEntry, old_hash: str, new_hash: str) -> AlertEvent:
        return self._simple_alert(
            AlertKind.FILE_INTEGRITY_VIOLATION,
            entry.severity,
            Path(entry.path),
            f"Integrity violation detected in file: {entry.path}",
            occurrence=f"Previous hash: {old_hash}, current hash: {new_hash}",
            details={"old_hash": old_hash, "new_hash": new_hash},
        )

    def _access_error_alert(self, path: Path, exc: FileAccessError) -> AlertEvent:
        log.warning("Cannot read critical file %s: %s", path, exc)
        return self._simple_alert(
            AlertKind.FILE_ACCESS_ERROR,
            Severity.WARNING.value,
            path,
            f"Cannot read critical file: {path}",
            details={"error": str(exc)},
        )

    def _emit(self, alert: AlertEvent) -> None:
        if alert.pattern in INTEGRITY_KINDS:
            with self._lock:
                self._violations.append((self._clock(), alert))
        if self._on_alert is None:
            return
        try:
            self._on_alert(alert)
        except Exception:
            log.exception("Integrity alert for %s could not be dispatched", alert.source)

    # ═══════════════════════════════════════════════════════════════════════
    #  Lifecycle
    # ═══════════════════════════════════════════════════════════════════════

    def _is_monitored(self, path: Path) -> bool:
        with self._lock:
            return path.resolve() in self._entries

    def start(self) -> None:
        self.baseline()
        self.verify_all()
        handler = PathEventHandler(
            on_change=self.check_file, on_delete=self.handle_deleted, accept=self._is_monitored
        )
        with self._lock:
            parents = sorted({p.parent for p in self._entries})
        for directory in parents:
            self._watcher.watch(directory, handler)
        self._watcher.start()
        self._sweeper.start()
        log.info("File integrity monitor started: %d file(s)", len(self._entries))

    def stop(self) -> None:
        self._watcher.stop()
        self._sweeper.stop()
