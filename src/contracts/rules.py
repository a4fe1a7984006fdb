"""Static monitor configuration: pattern rules and watched files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


@dataclass(slots=True)
class PatternRule:
    """Suspicious-text rule: ``threshold`` matches within ``time_window_seconds``."""

    pattern: str
    severity: str  # warning | high | critical
    threshold: int
    time_window_seconds: int
    regex: bool = False
    _compiled: re.Pattern[str] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.regex:
            self._compiled = re.compile(self.pattern, re.IGNORECASE)

    def matches(self, message: str) -> bool:
        if self._compiled is not None:
            return self._compiled.search(message) is not None
        return self.pattern.lower() in message.lower()

    @property
    def bucket_key(self) -> tuple[str, str]:
        return (self.pattern, self.severity)


@dataclass(slots=True)
class CriticalFile:
    """Configured critical path (may be a glob) with its alert severity."""

    path: str
    severity: str = "critical"


@dataclass(slots=True)
class FileWatchEntry:
    """Hash state of one concrete monitored file."""

    path: str
    severity: str
    last_hash: str | None = None
    last_checked_at: str | None = None  # ISO-8601
    missing: bool = False
