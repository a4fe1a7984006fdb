"""Tests for src.guard.brute_force — lockouts, escalation, unblock."""

from __future__ import annotations

import pytest

from src.contracts.enums import AlertKind
from src.guard import keys
from src.guard.brute_force import BruteForceGuard
from src.shared.errors import StoreUnavailable
from src.store.fallback import FallbackStore
from src.store.memory import InMemoryStore

ALICE = keys.user_id("alice")
ATTACKER = keys.ip_id("203.0.113.7")


class _BrokenStore(InMemoryStore):
    def get(self, key):
        raise StoreUnavailable("redis down")

    def increment(self, key, ttl_seconds):
        raise StoreUnavailable("redis down")


class _RedisDown(InMemoryStore):
    """Every operation fails, like an unreachable Redis."""

    def get(self, key):
        raise StoreUnavailable("redis down")

    def set(self, key, value, ttl_seconds):
        raise StoreUnavailable("redis down")

    def increment(self, key, ttl_seconds):
        raise StoreUnavailable("redis down")

    def delete(self, key):
        raise StoreUnavailable("redis down")

    def keys(self, prefix):
        raise StoreUnavailable("redis down")


# ═══════════════════════════════════════════════════════════════════════════
#  record_attempt
# ═══════════════════════════════════════════════════════════════════════════


class TestRecordAttempt:
    def test_alice_blocked_on_fifth_failure(self, guard):
        for n in range(1, 5):
            r = guard.record_attempt(ALICE, False)
            assert r.allowed and not r.blocked
            assert r.attempts == n
            assert r.attempts_remaining == 5 - n

        r5 = guard.record_attempt(ALICE, False)
        assert r5.blocked and not r5.allowed
        assert r5.reason == "max_attempts"
        assert r5.duration_seconds == 1800

    def test_sixth_attempt_blocked_without_counting(self, guard, store):
        for _ in range(5):
            guard.record_attempt(ALICE, False)
        r6 = guard.record_attempt(ALICE, False)
        assert r6.blocked
        assert r6.reason == "blocked"
        assert store.get(keys.attempts_key(ALICE)) is None

    def test_success_resets_counter(self, guard):
        for _ in range(4):
            guard.record_attempt(ALICE, False)
        assert guard.record_attempt(ALICE, True).allowed
        assert guard.failed_attempts(ALICE) == 0
        assert guard.record_attempt(ALICE, False).attempts == 1

    def test_captcha_from_third_failure(self, guard):
        flags = [guard.record_attempt(ALICE, False).require_captcha for _ in range(4)]
        assert flags == [False, False, True, True]

    def test_progressive_delay_doubles(self, guard):
        delays = [guard.record_attempt(ALICE, False).progressive_delay_ms for _ in range(4)]
        assert delays == [100, 200, 400, 800]

    @pytest.mark.parametrize("count,expected", [(0, 0), (1, 100), (7, 6400), (8, 10000), (30, 10000)])
    def test_progressive_delay_capped(self, guard, count, expected):
        assert guard.progressive_delay_ms(count) == expected

    def test_counter_window_expires(self, guard, clock):
        for _ in range(4):
            guard.record_attempt(ALICE, False)
        clock.advance(1801)
        assert guard.record_attempt(ALICE, False).attempts == 1

    def test_ip_uses_ip_limits(self, guard, settings):
        settings.max_ip_attempts = 3
        guard.record_attempt(ATTACKER, False)
        guard.record_attempt(ATTACKER, False)
        r = guard.record_attempt(ATTACKER, False)
        assert r.blocked
        assert r.duration_seconds == settings.ip_lock_duration

    def test_store_unavailable_allows_degraded(self, settings, clock):
        g = BruteForceGuard(_BrokenStore(clock=clock), settings, clock=clock)
        r = g.record_attempt(ALICE, False)
        assert r.allowed
        assert r.degraded
        assert r.reason == "store_unavailable"

    def test_lockout_unchanged_when_primary_store_is_down(self, settings, clock, alerts):
        store = FallbackStore(_RedisDown(clock=clock), InMemoryStore(clock=clock))
        g = BruteForceGuard(store, settings, on_alert=alerts.append, clock=clock)
        for n in range(1, 5):
            r = g.record_attempt(ALICE, False)
            assert r.allowed and not r.degraded
            assert r.attempts == n
        r = g.record_attempt(ALICE, False)
        assert r.blocked
        assert r.duration_seconds == 1800
        assert g.is_blocked(ALICE)
        assert store.failures > 0
        assert [a.pattern for a in alerts] == [AlertKind.ACCOUNT_LOCKED.value]


# ═══════════════════════════════════════════════════════════════════════════
#  Escalation
# ═══════════════════════════════════════════════════════════════════════════


class TestEscalation:
    def _lock(self, guard) -> int:
        result = None
        for _ in range(5):
            result = guard.record_attempt(ALICE, False)
        return result.duration_seconds

    def test_second_lockout_doubles(self, guard, clock):
        assert self._lock(guard) == 1800
        clock.advance(1801)
        assert self._lock(guard) == 3600

    def test_duration_capped_at_seven_days(self, guard, clock):
        durations = []
        for _ in range(400):
            durations.append(self._lock(guard))
            guard.unblock(ALICE)
        assert max(durations) == 604800
        assert durations[-1] == 604800

    def test_history_forgotten_after_window(self, guard, clock, settings):
        self._lock(guard)
        clock.advance(settings.escalation_window + 1)
        assert self._lock(guard) == 1800

    def test_failure_past_threshold_does_not_escalate_twice(self, guard, store, monkeypatch):
        # A concurrent failure already blocked alice and bumped the escalation count;
        # this one passed the block check before the record was written.
        guard.record_attempt(ALICE, False)
        for _ in range(4):
            store.increment(keys.attempts_key(ALICE), 1800)
        store.increment(keys.escalation_key(ALICE), 2592000)
        store.set(keys.block_key(ALICE), {"identifier": ALICE, "reason": "max_attempts",
                                          "duration_seconds": 1800}, 1800)
        monkeypatch.setattr(guard, "is_blocked", lambda identifier: False)

        r = guard.record_attempt(ALICE, False)
        assert r.blocked
        assert r.duration_seconds == 1800
        assert store.get(keys.escalation_key(ALICE)) == 1

    def test_stale_counter_past_threshold_still_blocks(self, guard, store):
        for _ in range(6):
            store.increment(keys.attempts_key(ALICE), 1800)
        r = guard.record_attempt(ALICE, False)
        assert r.blocked
        assert r.duration_seconds == 1800
        assert guard.is_blocked(ALICE)


# ═══════════════════════════════════════════════════════════════════════════
#  record_login (account + IP)
# ═══════════════════════════════════════════════════════════════════════════


class TestRecordLogin:
    def test_failure_counts_user_and_ip(self, guard):
        guard.record_login("alice", "198.51.100.1", False)
        assert guard.failed_attempts(ALICE) == 1
        assert guard.failed_attempts(keys.ip_id("198.51.100.1")) == 1

    def test_success_clears_only_user(self, guard):
        guard.record_login("alice", "198.51.100.1", False)
        guard.record_login("alice", "198.51.100.1", True)
        assert guard.failed_attempts(ALICE) == 0
        assert guard.failed_attempts(keys.ip_id("198.51.100.1")) == 1

    def test_user_lockout_reason(self, guard):
        r = None
        for _ in range(5):
            r = guard.record_login("alice", "198.51.100.1", False)
        assert r.blocked
        assert r.reason == "max_user_attempts"

    def test_blocked_ip_rejected_for_any_user(self, guard):
        guard.block(keys.ip_id("198.51.100.1"))
        r = guard.record_login("bob", "198.51.100.1", True)
        assert r.blocked
        assert r.reason == "ip_blocked"

    def test_blocked_user_rejected(self, guard):
        guard.block(ALICE)
        r = guard.record_login("alice", "198.51.100.9", True)
        assert r.reason == "user_blocked"


# ═══════════════════════════════════════════════════════════════════════════
#  Blocking / unblocking
# ═══════════════════════════════════════════════════════════════════════════


class TestBlocking:
    def test_block_record_and_alert(self, guard, alerts):
        record = guard.block(ATTACKER, 120, reason="manual")
        assert guard.is_blocked(ATTACKER)
        assert record.duration_seconds == 120
        assert record.blocked_at == "2026-02-26T10:00:00.000000Z"
        assert record.expires_at == "2026-02-26T10:02:00.000000Z"
        assert len(alerts) == 1
        assert alerts[0].pattern == AlertKind.IP_BLOCKED.value
        assert alerts[0].level == "high"
        assert alerts[0].details["reason"] == "manual"

    def test_account_lock_alert_kind(self, guard, alerts):
        for _ in range(5):
            guard.record_attempt(ALICE, False)
        assert [a.pattern for a in alerts] == [AlertKind.ACCOUNT_LOCKED.value]

    def test_block_expires(self, guard, clock):
        guard.block(ALICE, 60)
        clock.advance(60)
        assert not guard.is_blocked(ALICE)

    def test_unblock_user_is_idempotent(self, guard):
        for _ in range(5):
            guard.record_attempt(ALICE, False)
        guard.unblock_user("alice")
        guard.unblock_user("alice")
        assert not guard.is_blocked(ALICE)
        assert guard.record_attempt(ALICE, False).allowed

    def test_unblock_ip(self, guard):
        guard.block(ATTACKER)
        guard.unblock_ip("203.0.113.7")
        assert not guard.is_blocked(ATTACKER)

    def test_block_stats(self, guard):
        guard.block(ALICE)
        guard.block(keys.user_id("bob"))
        guard.block(ATTACKER)
        assert guard.block_stats() == {"blocked_users": 2, "blocked_ips": 1}

    def test_failing_alert_sink_does_not_break_block(self, store, settings, clock):
        def boom(_alert):
            raise RuntimeError("sink down")

        g = BruteForceGuard(store, settings, on_alert=boom, clock=clock)
        g.block(ALICE)
        assert g.is_blocked(ALICE)
