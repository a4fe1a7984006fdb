"""Alert model — one immutable record per raised security alert."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

_MAX_OCCURRENCE_MESSAGE = 200


def to_iso(dt: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_ts(iso: str) -> datetime:
    """Parse ISO-8601 timestamp to datetime (UTC)."""
    return datetime.fromisoformat(iso.replace("Z", "+00:00"))


@dataclass(frozen=True, slots=True)
class EventOccurrence:
    """A single log line that matched a pattern rule."""

    timestamp: str  # ISO-8601
    message: str
    source: str = ""

    def truncated(self) -> EventOccurrence:
        return EventOccurrence(
            timestamp=self.timestamp,
            message=self.message[:_MAX_OCCURRENCE_MESSAGE],
            source=self.source,
        )


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """Alert raised by a monitor or guard; appended to the alert log as one JSON line."""

    timestamp: str  # ISO-8601
    level: str  # info | warning | high | critical
    pattern: str  # rule pattern or an AlertKind value
    count: int
    time_window_seconds: int
    message: str
    source: str
    occurrences: tuple[EventOccurrence, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    # ── serialisation ─────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["occurrences"] = [asdict(o) for o in self.occurrences]
        return d

    def to_json(self) -> str:
        """Return compact JSON string (no trailing newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> AlertEvent:
        """Build an AlertEvent from a decoded alert-log line.

        Missing fields fall back to neutral defaults so that older or
        hand-written lines still load.
        """
        occurrences = tuple(
            EventOccurrence(
                timestamp=str(o.get("timestamp", "")),
                message=str(o.get("message", "")),
                source=str(o.get("source", "")),
            )
            for o in row.get("occurrences") or []
            if isinstance(o, dict)
        )
        return cls(
            timestamp=str(row.get("timestamp", "")),
            level=str(row.get("level", "info")),
            pattern=str(row.get("pattern", "")),
            count=int(row.get("count", 0) or 0),
            time_window_seconds=int(row.get("time_window_seconds", 0) or 0),
            message=str(row.get("message", "")),
            source=str(row.get("source", "")),
            occurrences=occurrences,
            details=dict(row.get("details") or {}),
        )

    @classmethod
    def from_json(cls, line: str) -> AlertEvent:
        """Decode one alert-log line; raises ValueError on malformed input."""
        obj = json.loads(line)
        if not isinstance(obj, dict):
            raise ValueError("alert line is not a JSON object")
        return cls.from_dict(obj)
