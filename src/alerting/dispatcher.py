"""AlertDispatcher: durable log first, then subscribers and outbound channels.

Order per alert
───────────────
  1. append to the alert log (serialised, never skipped)
  2. process log line at a level derived from severity
  3. in-process subscribers (stats cache, dashboards)
  4. each accepting channel, submitted to a worker pool

A failing channel never affects another channel or the caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor

from src.alerting.alert_log import AlertLog
from src.alerting.channels import AlertChannel
from src.contracts.alert import AlertEvent
from src.shared.errors import ChannelDispatchError

log = logging.getLogger(__name__)

Subscriber = Callable[[AlertEvent], object]

_LOG_LEVEL = {"critical": logging.ERROR, "high": logging.WARNING}


class AlertDispatcher:
    def __init__(
        self,
        alert_log: AlertLog,
        channels: Iterable[AlertChannel] = (),
        *,
        max_workers: int = 4,
    ) -> None:
        self.alert_log = alert_log
        self.channels = list(channels)
        self._subscribers: list[Subscriber] = []
        self._sub_lock = threading.Lock()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="alert-channel")
        self._closed = False

    # ── subscribers ──────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> None:
        with self._sub_lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._sub_lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    # ── dispatch ─────────────────────────────────────────────────────────

    def __call__(self, alert: AlertEvent) -> list[Future]:
        return self.dispatch(alert)

    def dispatch(self, alert: AlertEvent) -> list[Future]:
        """Record and fan out *alert*; returns one future per channel send."""
        try:
            self.alert_log.append(alert)
        except OSError as exc:
            log.error("Could not append alert to %s: %s", self.alert_log.path, exc)

        log.log(
            _LOG_LEVEL.get(alert.level, logging.INFO),
            "Security alert [%s] %s: %s",
            alert.level,
            alert.pattern,
            alert.message,
        )

        with self._sub_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(alert)
            except Exception:
                log.exception("Alert subscriber %r failed", callback)

        if self._closed:
            return []
        futures: list[Future] = []
        for channel in self.channels:
            if channel.accepts(alert.level):
                futures.append(self._pool.submit(self._send, channel, alert))
        return futures

    @staticmethod
    def _send(channel: AlertChannel, alert: AlertEvent) -> bool:
        try:
            channel.send(alert)
            return True
        except ChannelDispatchError as exc:
            log.error("Alert channel %s failed: %s", exc.channel, exc)
        except Exception:
            log.exception("Alert channel %s raised unexpectedly", channel.name)
        return False

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._pool.shutdown(wait=wait)
