"""Durable alert log: newline-delimited JSON, append-only."""

from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path

from src.contracts.alert import AlertEvent

log = logging.getLogger(__name__)


class AlertLog:
    """One AlertEvent per line; writers are serialised by a lock."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, alert: AlertEvent) -> None:
        line = alert.to_json() + "\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line)

    def tail(self, limit: int = 100) -> list[AlertEvent]:
        """Return the last *limit* readable alerts, oldest first.

        Malformed lines are skipped; a missing file yields an empty list.
        """
        if not self.path.exists():
            return []
        buf: deque[AlertEvent] = deque(maxlen=max(0, limit))
        with self.path.open("r", encoding="utf-8", errors="replace") as fh:
            for line_no, line in enumerate(fh, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    buf.append(AlertEvent.from_json(line))
                except ValueError as exc:  # JSONDecodeError is a ValueError
                    log.debug("Skipping alert-log line %d: %s", line_no, exc)
        return list(buf)

    def recent(self, limit: int = 50) -> list[AlertEvent]:
        """Newest first."""
        return list(reversed(self.tail(limit)))
