"""SecurityEngine: wires store, guards, dispatcher, monitors and stats.

Typical embedding::

    with SecurityEngine(Settings.from_env()) as engine:
        decision = engine.login_filter(RequestContext(ip=..., username=...))
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any

from src.alerting.alert_log import AlertLog
from src.alerting.channels import AlertChannel, build_channels
from src.alerting.dispatcher import AlertDispatcher
from src.alerting.stats import StatsAggregator
from src.guard.api_abuse import ApiAbuseGuard
from src.guard.brute_force import BruteForceGuard
from src.guard.middleware import ApiFilter, LoginFilter
from src.monitor.file_integrity import FileIntegrityMonitor
from src.monitor.log_patterns import LogPatternMonitor
from src.shared.config_loader import Settings
from src.store import build_store
from src.store.base import CounterStore

log = logging.getLogger(__name__)


class SecurityEngine:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: CounterStore | None = None,
        channels: Iterable[AlertChannel] | None = None,
    ) -> None:
        s = settings or Settings.from_env()
        self.settings = s
        self.store = store if store is not None else build_store(s)

        self.alert_log = AlertLog(s.alert_log_path)
        self.dispatcher = AlertDispatcher(
            self.alert_log, build_channels(s) if channels is None else channels
        )

        self.brute_force = BruteForceGuard(self.store, s, on_alert=self.dispatcher.dispatch)
        self.api_guard = ApiAbuseGuard(self.brute_force)
        self.login_filter = LoginFilter(self.brute_force)
        self.api_filter = ApiFilter(self.api_guard)

        self.log_monitor = LogPatternMonitor(
            s.patterns,
            self.dispatcher.dispatch,
            logs_dir=s.logs_dir,
            log_glob=s.log_glob,
            tail_lines=s.tail_lines,
            # own output in the watched directory must not be re-scanned
            exclude=(s.alert_log_path, s.monitor_log_path),
            prune_interval=s.prune_interval,
        )
        self.integrity = FileIntegrityMonitor(
            s.critical_files,
            self.dispatcher.dispatch,
            root=s.integrity_root,
            interval_sec=s.integrity_interval,
        )

        self.stats = StatsAggregator(
            self.alert_log,
            integrity=self.integrity,
            guard=self.brute_force,
            patterns=self.log_monitor,
            ttl=s.stats_ttl,
            recent=s.recent_alerts,
        )
        self.dispatcher.subscribe(self.stats.invalidate)
        self._started = False

    # ── lifecycle ────────────────────────────────────────────────────────

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        self.store.start()
        self.log_monitor.start()
        self.integrity.start()
        self._started = True
        log.info("Security engine started (logs: %s)", self.settings.logs_dir)

    def shutdown(self, wait: bool = True) -> None:
        """Stop observers and periodic tasks, drain channel sends, close the store."""
        self.log_monitor.stop()
        self.integrity.stop()
        self.dispatcher.shutdown(wait=wait)
        self.store.close()
        self._started = False
        log.info("Security engine stopped")

    def __enter__(self) -> SecurityEngine:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ── admin / read API ─────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        return self.stats.get_stats()

    def unblock_user(self, username: str) -> None:
        self.brute_force.unblock_user(username)

    def unblock_ip(self, addr: str) -> None:
        self.brute_force.unblock_ip(addr)


# ── process-wide convenience instance ───────────────────────────────────────

_default: SecurityEngine | None = None
_default_lock = threading.Lock()


def get_default_engine(settings: Settings | None = None) -> SecurityEngine:
    """Lazily build one shared engine; *settings* only apply on first call."""
    global _default
    with _default_lock:
        if _default is None:
            _default = SecurityEngine(settings)
        return _default


def reset_default_engine() -> None:
    global _default
    with _default_lock:
        engine, _default = _default, None
    if engine is not None:
        engine.shutdown()
