"""Шар даних дашборду: знімок статистики → pandas DataFrame."""

from __future__ import annotations

import logging
import os
from typing import Any

import pandas as pd

from src.alerting.alert_log import AlertLog
from src.alerting.stats import AlertLogIntegrity, StatsAggregator
from src.contracts.enums import SEVERITY_ORDER
from src.guard.brute_force import BruteForceGuard
from src.shared.config_loader import Settings
from src.store import build_store

log = logging.getLogger(__name__)

CONFIG_ENV = "SECURITY_MONITOR_CONFIG"

# critical first
SEVERITY_DISPLAY_ORDER: list[str] = sorted(SEVERITY_ORDER, key=lambda s: -SEVERITY_ORDER[s])


def build_aggregator(settings: Settings | None = None) -> StatsAggregator:
    """Агрегатор поверх журналу алертів та спільного сховища лічильників.

    Дашборд працює окремим процесом: стан інтеграції файлів береться з
    integrity-алертів журналу за останні 24 год, кількість блокувань видно
    лише при спільному Redis, живих вікон патернів тут немає.
    """
    if settings is None:
        settings = Settings.from_env(config_path=os.environ.get(CONFIG_ENV) or None)
    alert_log = AlertLog(settings.alert_log_path)
    guard = BruteForceGuard(build_store(settings), settings)
    return StatsAggregator(
        alert_log,
        integrity=AlertLogIntegrity(alert_log, file_count=len(settings.critical_files)),
        guard=guard,
        ttl=settings.stats_ttl,
        recent=settings.recent_alerts,
    )


def load_stats(aggregator: StatsAggregator) -> dict[str, Any] | None:
    """Повертає знімок статистики або None, якщо його не вдалося зібрати."""
    try:
        return aggregator.get_stats()
    except Exception as exc:
        log.warning("Stats unavailable: %s", exc)
        return None


# ── frames ──────────────────────────────────────────────────────────────────


def severity_frame(stats: dict[str, Any]) -> pd.DataFrame:
    """Кількість алертів за рівнем (critical → info)."""
    alerts = stats.get("alerts") or {}
    return pd.DataFrame(
        {
            "severity": SEVERITY_DISPLAY_ORDER,
            "count": [int(alerts.get(sev, 0)) for sev in SEVERITY_DISPLAY_ORDER],
        }
    )


def pattern_frame(stats: dict[str, Any]) -> pd.DataFrame:
    """Кількість алертів за патерном, за спаданням."""
    patterns = stats.get("patterns") or {}
    df = pd.DataFrame(list(patterns.items()), columns=["pattern", "count"])
    if df.empty:
        return df
    return df.sort_values(["count", "pattern"], ascending=[False, True]).reset_index(drop=True)


def recent_alerts_frame(stats: dict[str, Any]) -> pd.DataFrame:
    cols = ["timestamp", "level", "pattern", "message", "source", "count"]
    df = pd.DataFrame(stats.get("recent_alerts") or [], columns=cols)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    return df


def active_buckets_frame(stats: dict[str, Any]) -> pd.DataFrame:
    rows = []
    for key, n in (stats.get("active_buckets") or {}).items():
        pattern, _, severity = key.rpartition(":")
        rows.append({"pattern": pattern, "severity": severity, "occurrences": int(n)})
    return pd.DataFrame(rows, columns=["pattern", "severity", "occurrences"])


def integrity_violations_frame(stats: dict[str, Any]) -> pd.DataFrame:
    integrity = stats.get("integrity") or {}
    df = pd.DataFrame(integrity.get("violations") or [],
                      columns=["timestamp", "pattern", "source", "level"])
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    return df
