"""Canonical enumerations shared by the guards, monitors and dispatcher."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: str) -> Severity:
        """Case-insensitive lookup; raises ValueError on unknown names."""
        return cls(str(value).strip().lower())


SEVERITY_ORDER: dict[str, int] = {"info": 0, "warning": 1, "high": 2, "critical": 3}


class AlertKind(str, Enum):
    """``pattern`` values used by alerts that are not raised by log rules."""

    FILE_INTEGRITY_VIOLATION = "file_integrity_violation"
    FILE_DELETION = "file_deletion"
    FILE_MISSING = "file_missing"
    FILE_ACCESS_ERROR = "file_access_error"
    ACCOUNT_LOCKED = "account_locked"
    IP_BLOCKED = "ip_blocked"


INTEGRITY_KINDS: frozenset[str] = frozenset(
    {
        AlertKind.FILE_INTEGRITY_VIOLATION.value,
        AlertKind.FILE_DELETION.value,
        AlertKind.FILE_MISSING.value,
    }
)
