"""Tests for src.contracts — alert, block and rule records."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.contracts.alert import AlertEvent, EventOccurrence, parse_ts, to_iso
from src.contracts.block import BlockRecord, CounterEntry, EscalationCounter
from src.contracts.enums import Severity
from src.contracts.rules import PatternRule
from tests.conftest import make_alert


class TestTimestamps:
    def test_to_iso_naive_treated_as_utc(self):
        assert to_iso(datetime(2026, 2, 26, 10, 0, 0)) == "2026-02-26T10:00:00.000000Z"

    def test_parse_ts_z_suffix(self):
        dt = parse_ts("2026-02-26T10:00:00.000000Z")
        assert dt.tzinfo is not None
        assert dt == datetime(2026, 2, 26, 10, tzinfo=timezone.utc)


class TestAlertEvent:
    def test_json_line_is_compact_and_decodable(self):
        alert = make_alert(occurrences=(EventOccurrence("t", "m", "s"),), details={"old_hash": "a"})
        line = alert.to_json()
        assert "\n" not in line
        back = AlertEvent.from_json(line)
        assert back == alert

    def test_from_dict_tolerates_missing_fields(self):
        a = AlertEvent.from_dict({"pattern": "x", "timeWindow": 9})
        assert a.level == "info"
        assert a.count == 0
        assert a.occurrences == ()

    def test_from_json_rejects_non_object(self):
        with pytest.raises(ValueError):
            AlertEvent.from_json("[1, 2]")

    def test_occurrence_truncated(self):
        occ = EventOccurrence("t", "y" * 300)
        assert len(occ.truncated().message) == 200


class TestBlockRecords:
    def test_counter_entry_expiry_inclusive(self):
        e = CounterEntry("k", 1, expires_at=100.0, last_updated=0.0)
        assert not e.is_expired(99.9)
        assert e.is_expired(100.0)

    def test_block_record_dict(self):
        rec = BlockRecord("ip:1.2.3.4", "t0", "manual", 60, "t1")
        assert BlockRecord.from_dict(rec.to_dict()) == rec

    @pytest.mark.parametrize("prior,expected", [(0, 1800), (1, 1800), (2, 3600), (3, 5400), (1000, 604800)])
    def test_escalation_duration(self, prior, expected):
        assert EscalationCounter("user:a", prior, 2592000).next_duration(1800, 604800) == expected


class TestRulesAndEnums:
    def test_substring_rule_case_insensitive(self):
        rule = PatternRule("Invalid JWT", "warning", 5, 300)
        assert rule.matches("auth: INVALID jwt signature")
        assert not rule.matches("valid token")

    def test_bucket_key(self):
        assert PatternRule("p", "high", 1, 60).bucket_key == ("p", "high")

    def test_severity_parse(self):
        assert Severity.parse(" High ") is Severity.HIGH
        with pytest.raises(ValueError):
            Severity.parse("medium")
