"""Stoppable periodic tasks (store sweep, integrity sweep, bucket pruning)."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

log = logging.getLogger(__name__)


class PeriodicTask:
    """Run *func* every *interval_sec* seconds on a daemon thread.

    ``stop()`` wakes the thread immediately; a run that is already in
    progress is allowed to finish.
    """

    def __init__(self, name: str, interval_sec: float, func: Callable[[], object]) -> None:
        if interval_sec <= 0:
            raise ValueError(f"interval must be positive, got {interval_sec}")
        self.name = name
        self.interval_sec = interval_sec
        self._func = func
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        log.debug("Periodic task %s started (every %.0fs)", self.name, self.interval_sec)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.debug("Periodic task %s stopped", self.name)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_sec):
            try:
                self._func()
            except Exception:
                log.exception("Periodic task %s failed", self.name)
