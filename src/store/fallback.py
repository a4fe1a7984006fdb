"""Primary/fallback composition: remote store first, in-process map on failure."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from src.shared.errors import StoreUnavailable
from src.store.base import CounterStore
from src.store.memory import InMemoryStore

log = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackStore(CounterStore):
    """Serve every call from *primary*; on StoreUnavailable use *fallback*.

    Failures are logged per occurrence and never raised. State written to
    the fallback is not copied back when the primary recovers.
    """

    def __init__(self, primary: CounterStore, fallback: InMemoryStore) -> None:
        self.primary = primary
        self.fallback = fallback
        self.failures = 0

    def _call(self, op: str, key: str, primary: Callable[[], T], fallback: Callable[[], T]) -> T:
        try:
            return primary()
        except StoreUnavailable as exc:
            self.failures += 1
            log.error("Store %s failed for %s, using in-memory fallback: %s", op, key, exc)
            return fallback()

    def get(self, key: str) -> Any | None:
        return self._call("get", key, lambda: self.primary.get(key), lambda: self.fallback.get(key))

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._call(
            "set",
            key,
            lambda: self.primary.set(key, value, ttl_seconds),
            lambda: self.fallback.set(key, value, ttl_seconds),
        )

    def increment(self, key: str, ttl_seconds: int) -> int:
        return self._call(
            "increment",
            key,
            lambda: self.primary.increment(key, ttl_seconds),
            lambda: self.fallback.increment(key, ttl_seconds),
        )

    def delete(self, key: str) -> None:
        # Clear both so an entry written during an outage cannot resurface.
        self.fallback.delete(key)
        self._call("delete", key, lambda: self.primary.delete(key), lambda: None)

    def keys(self, prefix: str) -> list[str]:
        return self._call(
            "keys", prefix, lambda: self.primary.keys(prefix), lambda: self.fallback.keys(prefix)
        )

    def start(self) -> None:
        self.primary.start()
        self.fallback.start()

    def close(self) -> None:
        self.primary.close()
        self.fallback.close()
