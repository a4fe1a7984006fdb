"""Contracts — canonical data structures shared by all modules."""

from src.contracts.alert import AlertEvent, EventOccurrence
from src.contracts.block import AttemptResult, BlockRecord, CounterEntry, EscalationCounter
from src.contracts.enums import AlertKind, Severity
from src.contracts.rules import CriticalFile, FileWatchEntry, PatternRule

__all__ = [
    "AlertEvent",
    "AlertKind",
    "AttemptResult",
    "BlockRecord",
    "CounterEntry",
    "CriticalFile",
    "EscalationCounter",
    "EventOccurrence",
    "FileWatchEntry",
    "PatternRule",
    "Severity",
]
