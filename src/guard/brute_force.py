"""BruteForceGuard — failed-login tracking with escalating lockouts.

State per identifier (``user:<id>`` and ``ip:<addr>`` are independent)
────────────────────────────────────────────────────────────────────
  CLEAN ──failure──▶ ACCUMULATING (1 .. N-1) ──N-th failure──▶ BLOCKED
  ACCUMULATING ──success──▶ CLEAN
  BLOCKED ──TTL expiry / unblock──▶ CLEAN

Lockout duration
────────────────
  prior = number of lockouts in the last 30 days (including this one)
  duration = min(base * prior, 7 days)

Every transition is a single operation on one store key, so no
cross-key locking is needed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from src.contracts.alert import AlertEvent, EventOccurrence, to_iso
from src.contracts.block import AttemptResult, BlockRecord, EscalationCounter
from src.contracts.enums import AlertKind, Severity
from src.guard import keys
from src.shared.config_loader import Settings
from src.shared.errors import StoreUnavailable
from src.store.base import CounterStore

log = logging.getLogger(__name__)

AlertSink = Callable[[AlertEvent], object]


class BruteForceGuard:
    """Allow/deny decisions for authentication attempts."""

    def __init__(
        self,
        store: CounterStore,
        settings: Settings | None = None,
        *,
        on_alert: AlertSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self._on_alert = on_alert
        self._clock = clock

    # ── policy per identifier kind ───────────────────────────────────────

    def max_attempts(self, identifier: str) -> int:
        if keys.kind_of(identifier) == keys.IP:
            return self.settings.max_ip_attempts
        return self.settings.max_login_attempts

    def lock_duration(self, identifier: str) -> int:
        if keys.kind_of(identifier) == keys.IP:
            return self.settings.ip_lock_duration
        return self.settings.account_lock_duration

    def progressive_delay_ms(self, count: int) -> int:
        if count <= 0:
            return 0
        s = self.settings
        return int(min(s.max_delay_ms, s.base_delay_ms * 2 ** (count - 1)))

    # ═══════════════════════════════════════════════════════════════════════
    #  Reads
    # ═══════════════════════════════════════════════════════════════════════

    def get_block(self, identifier: str) -> BlockRecord | None:
        raw = self.store.get(keys.block_key(identifier))
        if raw is None:
            return None
        if isinstance(raw, dict):
            return BlockRecord.from_dict(raw)
        return BlockRecord(identifier=identifier, blocked_at="", reason=str(raw),
                           duration_seconds=0, expires_at="")

    def is_blocked(self, identifier: str) -> bool:
        return self.get_block(identifier) is not None

    def failed_attempts(self, identifier: str) -> int:
        return int(self.store.get(keys.attempts_key(identifier)) or 0)

    def block_stats(self) -> dict[str, int]:
        return {
            "blocked_users": len(self.store.keys(keys.block_key(keys.user_id("")))),
            "blocked_ips": len(self.store.keys(keys.block_key(keys.ip_id("")))),
        }

    # ═══════════════════════════════════════════════════════════════════════
    #  Attempts
    # ═══════════════════════════════════════════════════════════════════════

    def record_attempt(self, identifier: str, success: bool) -> AttemptResult:
        """Record one login outcome for *identifier* and decide.

        A blocked identifier is never counted further. On store failure
        the attempt is allowed once and the result is marked degraded.
        """
        max_attempts = self.max_attempts(identifier)
        try:
            if self.is_blocked(identifier):
                return AttemptResult(
                    allowed=False,
                    blocked=True,
                    reason="blocked",
                    max_attempts=max_attempts,
                    require_captcha=True,
                )

            if success:
                self.store.delete(keys.attempts_key(identifier))
                return AttemptResult(allowed=True, max_attempts=max_attempts)

            count = self.store.increment(keys.attempts_key(identifier), self.lock_duration(identifier))
            if count >= max_attempts:
                # Past the threshold means a concurrent failure got there first;
                # its block stands and the escalation counter is not bumped again.
                # Two callers racing before either block is written can still both
                # escalate.
                existing = self.get_block(identifier) if count > max_attempts else None
                if existing is not None:
                    return AttemptResult(
                        allowed=False,
                        blocked=True,
                        reason="blocked",
                        attempts=count,
                        max_attempts=max_attempts,
                        require_captcha=True,
                        duration_seconds=existing.duration_seconds,
                    )
                duration = self._escalated_duration(identifier)
                self.block(identifier, duration, reason="max_attempts", attempts=count)
                return AttemptResult(
                    allowed=False,
                    blocked=True,
                    reason="max_attempts",
                    attempts=count,
                    max_attempts=max_attempts,
                    require_captcha=True,
                    duration_seconds=duration,
                )

            return AttemptResult(
                allowed=True,
                attempts=count,
                attempts_remaining=max_attempts - count,
                max_attempts=max_attempts,
                require_captcha=count >= self.settings.captcha_threshold,
                progressive_delay_ms=self.progressive_delay_ms(count),
            )
        except StoreUnavailable as exc:
            log.warning("Store unavailable while recording attempt for %s — allowing once: %s",
                        identifier, exc)
            return AttemptResult(allowed=True, reason="store_unavailable",
                                 max_attempts=max_attempts, degraded=True)

    def record_login(self, username: str, ip: str, success: bool) -> AttemptResult:
        """Combined flow for a login form: account and source IP together.

        Success clears only the account counter; the IP counter keeps
        accumulating so one address cannot rotate through accounts.
        """
        user, addr = keys.user_id(username), keys.ip_id(ip)
        try:
            user_blocked = self.is_blocked(user)
            if user_blocked or self.is_blocked(addr):
                return AttemptResult(
                    allowed=False,
                    blocked=True,
                    reason="user_blocked" if user_blocked else "ip_blocked",
                    max_attempts=self.max_attempts(user),
                    require_captcha=True,
                )
        except StoreUnavailable as exc:
            log.warning("Store unavailable while checking blocks for %s/%s — allowing once: %s",
                        username, ip, exc)
            return AttemptResult(allowed=True, reason="store_unavailable", degraded=True)

        if success:
            return self.record_attempt(user, True)

        user_res = self.record_attempt(user, False)
        ip_res = self.record_attempt(addr, False)
        if user_res.blocked:
            user_res.reason = "max_user_attempts"
            return user_res
        if ip_res.blocked:
            ip_res.reason = "max_ip_attempts"
            return ip_res
        user_res.degraded = user_res.degraded or ip_res.degraded
        return user_res

    # ═══════════════════════════════════════════════════════════════════════
    #  Blocking
    # ═══════════════════════════════════════════════════════════════════════

    def block(
        self,
        identifier: str,
        duration_seconds: int | None = None,
        reason: str = "manual",
        attempts: int = 0,
    ) -> BlockRecord:
        """Create (or replace) the BlockRecord for *identifier*."""
        duration = int(duration_seconds or self.lock_duration(identifier))
        now = datetime.fromtimestamp(self._clock(), tz=UTC)
        record = BlockRecord(
            identifier=identifier,
            blocked_at=to_iso(now),
            reason=reason,
            duration_seconds=duration,
            expires_at=to_iso(now + timedelta(seconds=duration)),
        )
        self.store.set(keys.block_key(identifier), record.to_dict(), duration)
        # BLOCKED -> CLEAN once the record expires, not back to N-1
        self.store.delete(keys.attempts_key(identifier))
        log.warning("Blocked %s for %ds (%s)", identifier, duration, reason)
        self._emit_block_alert(record, attempts)
        return record

    def unblock(self, identifier: str) -> None:
        """Administrative override; idempotent."""
        self.store.delete(keys.block_key(identifier))
        self.store.delete(keys.attempts_key(identifier))
        log.info("Manually unblocked %s", identifier)

    def unblock_user(self, username: str) -> None:
        self.unblock(keys.user_id(username))

    def unblock_ip(self, addr: str) -> None:
        self.unblock(keys.ip_id(addr))

    def _escalated_duration(self, identifier: str) -> int:
        window = self.settings.escalation_window
        prior = self.store.increment(keys.escalation_key(identifier), window)
        counter = EscalationCounter(identifier=identifier, prior_block_count=prior,
                                    window_seconds=window)
        return counter.next_duration(self.lock_duration(identifier), self.settings.max_lock_duration)

    def _emit_block_alert(self, record: BlockRecord, attempts: int) -> None:
        if self._on_alert is None:
            return
        is_ip = keys.kind_of(record.identifier) == keys.IP
        kind = AlertKind.IP_BLOCKED if is_ip else AlertKind.ACCOUNT_LOCKED
        message = f"{record.identifier} blocked for {record.duration_seconds}s ({record.reason})"
        alert = AlertEvent(
            timestamp=record.blocked_at,
            level=Severity.HIGH.value,
            pattern=kind.value,
            count=attempts,
            time_window_seconds=record.duration_seconds,
            message=message,
            source=record.identifier,
            occurrences=(EventOccurrence(timestamp=record.blocked_at, message=message,
                                         source=record.identifier),),
            details=record.to_dict(),
        )
        try:
            self._on_alert(alert)
        except Exception:
            log.exception("Block alert for %s could not be dispatched", record.identifier)
