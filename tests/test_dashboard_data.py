"""Tests for src.dashboard.data_access — stats snapshot to DataFrames."""

from __future__ import annotations

from src.alerting.alert_log import AlertLog
from src.contracts.rules import CriticalFile
from src.dashboard.data_access import (
    active_buckets_frame,
    build_aggregator,
    integrity_violations_frame,
    load_stats,
    pattern_frame,
    recent_alerts_frame,
    severity_frame,
)
from src.monitor.file_integrity import FileIntegrityMonitor
from src.shared.config_loader import Settings
from tests.conftest import make_alert

STATS = {
    "alerts": {"critical": 3, "high": 1, "warning": 0, "info": 2, "total": 6},
    "patterns": {"XSS attempt": 3, "invalid JWT": 1, "blocked IP": 3},
    "recent_alerts": [
        {"timestamp": "2026-02-26T10:00:05.000000Z", "level": "critical", "pattern": "XSS attempt",
         "message": "m", "source": "app.log", "count": 1},
    ],
    "integrity": {"status": "violated", "violations": [
        {"timestamp": "2026-02-26T09:00:00.000000Z", "pattern": "file_deletion",
         "source": "/srv/.env", "level": "critical"},
    ]},
    "active_buckets": {"failed login attempt:warning": 2},
}


class TestFrames:
    def test_severity_frame_ordered_critical_first(self):
        df = severity_frame(STATS)
        assert list(df["severity"]) == ["critical", "high", "warning", "info"]
        assert list(df["count"]) == [3, 1, 0, 2]

    def test_pattern_frame_sorted(self):
        df = pattern_frame(STATS)
        assert list(df["pattern"]) == ["XSS attempt", "blocked IP", "invalid JWT"]

    def test_pattern_frame_empty(self):
        assert pattern_frame({}).empty

    def test_recent_alerts_parsed_timestamps(self):
        df = recent_alerts_frame(STATS)
        assert str(df["timestamp"].dt.tz) == "UTC"
        assert df.iloc[0]["pattern"] == "XSS attempt"

    def test_recent_alerts_empty_has_columns(self):
        assert list(recent_alerts_frame({}).columns)[:3] == ["timestamp", "level", "pattern"]

    def test_active_buckets_split(self):
        df = active_buckets_frame(STATS)
        assert df.to_dict("records") == [
            {"pattern": "failed login attempt", "severity": "warning", "occurrences": 2}
        ]

    def test_integrity_violations(self):
        df = integrity_violations_frame(STATS)
        assert list(df["pattern"]) == ["file_deletion"]


class TestAggregator:
    def test_reads_alert_log(self, tmp_path):
        s = Settings()
        s.logs_dir = str(tmp_path)
        agg = build_aggregator(s)
        agg.alert_log.append(make_alert(level="critical"))
        stats = load_stats(agg)
        assert stats["alerts"]["critical"] == 1
        assert stats["integrity"]["status"] == "ok"
        assert stats["integrity"]["file_count"] == len(s.critical_files)

    def test_integrity_violation_written_by_monitor_is_visible(self, tmp_path):
        s = Settings()
        s.logs_dir = str(tmp_path / "logs")
        s.integrity_root = str(tmp_path)
        s.critical_files = [CriticalFile("server.js")]
        target = tmp_path / "server.js"
        target.write_text("v1")

        alert_log = AlertLog(s.alert_log_path)
        monitor = FileIntegrityMonitor(s.critical_files, alert_log.append, root=s.integrity_root)
        monitor.baseline()
        target.write_text("v2")
        monitor.verify_all()

        integrity = load_stats(build_aggregator(s))["integrity"]
        assert integrity["status"] == "violated"
        assert [v["pattern"] for v in integrity["violations"]] == ["file_integrity_violation"]

    def test_no_live_pattern_source(self, tmp_path):
        s = Settings()
        s.logs_dir = str(tmp_path)
        assert build_aggregator(s).patterns is None
