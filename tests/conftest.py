"""Shared fixtures for the abuse-guard / security-monitor tests."""

from __future__ import annotations

import pytest

from src.contracts.alert import AlertEvent, EventOccurrence
from src.contracts.rules import PatternRule
from src.guard.brute_force import BruteForceGuard
from src.shared.config_loader import Settings
from src.store.memory import InMemoryStore

T0 = 1_772_100_000.0  # 2026-02-26T10:00:00Z


# ── Helper: controllable clock ───────────────────────────────────────────


class FakeClock:
    """Callable returning a settable epoch time."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


# ── Helper: create AlertEvent / PatternRule with sensible defaults ───────


def make_alert(
    *,
    timestamp: str = "2026-02-26T10:00:00.000000Z",
    level: str = "warning",
    pattern: str = "failed login attempt",
    count: int = 5,
    time_window_seconds: int = 300,
    message: str = "Suspicious pattern detected: failed login attempt (5 occurrences in 300s)",
    source: str = "logs/security/auth.log",
    occurrences: tuple[EventOccurrence, ...] = (),
    details: dict | None = None,
) -> AlertEvent:
    return AlertEvent(
        timestamp=timestamp,
        level=level,
        pattern=pattern,
        count=count,
        time_window_seconds=time_window_seconds,
        message=message,
        source=source,
        occurrences=occurrences,
        details=details or {},
    )


def make_rule(
    *,
    pattern: str = "failed login attempt",
    severity: str = "warning",
    threshold: int = 3,
    time_window_seconds: int = 60,
    regex: bool = False,
) -> PatternRule:
    return PatternRule(
        pattern=pattern,
        severity=severity,
        threshold=threshold,
        time_window_seconds=time_window_seconds,
        regex=regex,
    )


# ── Fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings()
    s.logs_dir = str(tmp_path / "logs")
    return s


@pytest.fixture
def store(clock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def alerts() -> list[AlertEvent]:
    """Sink list; pass ``alerts.append`` as an ``on_alert`` callback."""
    return []


@pytest.fixture
def guard(store, settings, clock, alerts) -> BruteForceGuard:
    return BruteForceGuard(store, settings, on_alert=alerts.append, clock=clock)
