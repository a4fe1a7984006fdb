"""Counter, block and attempt-result records used by the guards."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(slots=True)
class CounterEntry:
    """One stored value with its expiry.

    ``value`` is an int for counters or a JSON-able dict for block
    records. The entry reads as absent once ``now >= expires_at``.
    """

    key: str
    value: Any
    expires_at: float  # epoch seconds
    last_updated: float  # epoch seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(slots=True)
class BlockRecord:
    """Active lockout for one identifier (``user:<id>`` or ``ip:<addr>``)."""

    identifier: str
    blocked_at: str  # ISO-8601
    reason: str
    duration_seconds: int
    expires_at: str  # ISO-8601

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> BlockRecord:
        return cls(
            identifier=str(row.get("identifier", "")),
            blocked_at=str(row.get("blocked_at", "")),
            reason=str(row.get("reason", "")),
            duration_seconds=int(row.get("duration_seconds", 0) or 0),
            expires_at=str(row.get("expires_at", "")),
        )


@dataclass(slots=True)
class EscalationCounter:
    """Prior lockouts of an identifier within the escalation window."""

    identifier: str
    prior_block_count: int
    window_seconds: int

    def next_duration(self, base_seconds: int, cap_seconds: int) -> int:
        return min(base_seconds * max(1, self.prior_block_count), cap_seconds)


@dataclass(slots=True)
class AttemptResult:
    """Outcome of ``BruteForceGuard.record_attempt``."""

    allowed: bool
    blocked: bool = False
    reason: str = ""
    attempts: int = 0
    attempts_remaining: int = 0
    max_attempts: int = 0
    require_captcha: bool = False
    progressive_delay_ms: int = 0
    duration_seconds: int = 0
    degraded: bool = False
