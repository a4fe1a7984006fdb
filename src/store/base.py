"""CounterStore — key/value counters and block entries with per-key TTL."""

from __future__ import annotations

import abc
from typing import Any


class CounterStore(abc.ABC):
    """Storage contract shared by the brute-force and API guards.

    Keys are namespaced by the caller (``bf:``, ``api:``, ``block:``).
    ``increment`` must be atomic for concurrent callers on one key and
    sets the TTL only when the key is created.
    """

    @abc.abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when absent or expired."""

    @abc.abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store *value* (int or JSON-able dict), replacing any previous value."""

    @abc.abstractmethod
    def increment(self, key: str, ttl_seconds: int) -> int:
        """Atomically add one and return the new count."""

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*; a missing key is not an error."""

    @abc.abstractmethod
    def keys(self, prefix: str) -> list[str]:
        """Return live keys starting with *prefix* (unprefixed by the backend)."""

    def start(self) -> None:
        """Start background maintenance, if any."""

    def close(self) -> None:
        """Release connections and stop background maintenance."""
