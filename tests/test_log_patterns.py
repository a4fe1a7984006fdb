"""Tests for src.monitor.log_patterns — sliding-window pattern detection."""

from __future__ import annotations

import json

import pytest

from src.monitor.log_patterns import LogPatternMonitor, extract_message
from tests.conftest import make_rule


@pytest.fixture
def monitor(clock, alerts) -> LogPatternMonitor:
    return LogPatternMonitor([make_rule(threshold=3, time_window_seconds=60)], alerts.append, clock=clock)


class TestExtractMessage:
    def test_json_message_field(self):
        assert extract_message('{"message": "XSS attempt", "level": "warn"}') == "XSS attempt"

    def test_malformed_json_uses_raw(self):
        assert extract_message("{not json XSS attempt") == "{not json XSS attempt"

    def test_non_string_message_uses_raw(self):
        line = json.dumps({"message": 42})
        assert extract_message(line) == line

    def test_json_array_uses_raw(self):
        assert extract_message('["a"]') == '["a"]'


class TestProcessLine:
    def test_below_threshold_no_alert(self, monitor, alerts):
        monitor.process_line("Failed login attempt for alice")
        monitor.process_line("failed LOGIN attempt for bob")
        assert alerts == []
        assert monitor.bucket_counts() == {("failed login attempt", "warning"): 2}

    def test_threshold_raises_alert_and_resets(self, monitor, alerts, clock):
        for i in range(3):
            clock.advance(1)
            monitor.process_line(f"failed login attempt #{i}", source="auth.log")
        assert len(alerts) == 1
        a = alerts[0]
        assert a.level == "warning"
        assert a.count == 3
        assert a.time_window_seconds == 60
        assert a.source == "auth.log"
        assert a.message == "Suspicious pattern detected: failed login attempt (3 occurrences in 60s)"
        assert [o.message for o in a.occurrences] == [f"failed login attempt #{i}" for i in range(3)]
        assert monitor.bucket_counts() == {}

    def test_occurrences_outside_window_excluded(self, monitor, alerts, clock):
        monitor.process_line("failed login attempt")
        clock.advance(30)
        monitor.process_line("failed login attempt")
        clock.advance(31)  # first occurrence now 61 s old
        monitor.process_line("failed login attempt")
        assert alerts == []
        assert monitor.bucket_counts() == {("failed login attempt", "warning"): 2}

    def test_fourth_line_after_reset_starts_over(self, monitor, alerts):
        for _ in range(4):
            monitor.process_line("failed login attempt")
        assert len(alerts) == 1
        assert monitor.bucket_counts() == {("failed login attempt", "warning"): 1}

    def test_threshold_one_fires_immediately(self, clock, alerts):
        m = LogPatternMonitor([make_rule(pattern="SQL injection attempt", severity="critical",
                                         threshold=1)], alerts.append, clock=clock)
        raised = m.process_line('{"message": "sql INJECTION attempt on /search"}')
        assert len(raised) == 1
        assert raised[0].level == "critical"

    def test_occurrence_message_truncated(self, clock, alerts):
        m = LogPatternMonitor([make_rule(pattern="XSS", threshold=1)], alerts.append, clock=clock)
        m.process_line("XSS " + "x" * 500)
        assert len(alerts[0].occurrences[0].message) == 200

    def test_regex_rule(self, clock, alerts):
        m = LogPatternMonitor([make_rule(pattern=r"union\s+select", threshold=1, regex=True)],
                              alerts.append, clock=clock)
        m.process_line("GET /?q=1 UNION   SELECT password")
        assert len(alerts) == 1

    def test_one_line_can_match_several_rules(self, clock, alerts):
        rules = [make_rule(pattern="blocked IP", threshold=1), make_rule(pattern="brute force", threshold=1)]
        m = LogPatternMonitor(rules, alerts.append, clock=clock)
        m.process_line("brute force detected, blocked IP 203.0.113.7")
        assert sorted(a.pattern for a in alerts) == ["blocked IP", "brute force"]

    def test_failing_sink_still_returns_alerts(self, clock):
        def boom(_alert):
            raise RuntimeError("dispatcher down")

        m = LogPatternMonitor([make_rule(threshold=1)], boom, clock=clock)
        assert len(m.process_line("failed login attempt")) == 1


class TestScanFile:
    def test_first_scan_reads_last_lines_only(self, tmp_path, clock, alerts):
        log_file = tmp_path / "app.log"
        lines = ["failed login attempt"] * 5 + ["noise"] * 8
        log_file.write_text("\n".join(lines) + "\n")
        m = LogPatternMonitor([make_rule(threshold=1)], alerts.append, tail_lines=10, clock=clock)
        m.scan_file(log_file)
        # last 10 lines hold two of the five matches
        assert len(alerts) == 2

    def test_subsequent_scan_reads_appended_lines(self, tmp_path, monitor, alerts):
        log_file = tmp_path / "app.log"
        log_file.write_text("noise\n")
        monitor.scan_file(log_file)
        with log_file.open("a") as fh:
            fh.write("failed login attempt\n" * 3)
        raised = monitor.scan_file(log_file)
        assert len(raised) == 1
        assert monitor.scan_file(log_file) == []

    def test_partial_line_waits_for_newline(self, tmp_path, clock, alerts):
        log_file = tmp_path / "app.log"
        log_file.write_text("")
        m = LogPatternMonitor([make_rule(threshold=1)], alerts.append, clock=clock)
        m.scan_file(log_file)
        with log_file.open("a") as fh:
            fh.write("failed login")
        assert m.scan_file(log_file) == []
        with log_file.open("a") as fh:
            fh.write(" attempt\n")
        assert len(m.scan_file(log_file)) == 1

    def test_truncated_file_rescanned_from_start(self, tmp_path, clock, alerts):
        log_file = tmp_path / "app.log"
        log_file.write_text("noise line one\nnoise line two\n")
        m = LogPatternMonitor([make_rule(threshold=1)], alerts.append, clock=clock)
        m.scan_file(log_file)
        log_file.write_text("failed login attempt\n")
        assert len(m.scan_file(log_file)) == 1

    def test_excluded_file_ignored(self, tmp_path, clock, alerts):
        log_file = tmp_path / "security-alerts.log"
        log_file.write_text("failed login attempt\n")
        m = LogPatternMonitor([make_rule(threshold=1)], alerts.append, exclude=[log_file], clock=clock)
        assert m.scan_file(log_file) == []

    def test_missing_file_logged_and_skipped(self, tmp_path, monitor):
        assert monitor.scan_file(tmp_path / "absent.log") == []


class TestPrune:
    def test_prune_drops_expired_and_empty_buckets(self, monitor, clock):
        monitor.process_line("failed login attempt")
        clock.advance(61)
        assert monitor.prune() == 1
        assert monitor.bucket_counts() == {}

    def test_prune_keeps_live_occurrences(self, monitor, clock):
        monitor.process_line("failed login attempt")
        clock.advance(10)
        assert monitor.prune() == 0
        assert monitor.bucket_counts() == {("failed login attempt", "warning"): 1}


class TestRules:
    def test_rules_is_a_copy(self, monitor):
        monitor.rules.clear()
        assert len(monitor.rules) == 1
