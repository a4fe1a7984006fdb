"""Remote CounterStore backed by Redis."""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from src.shared.errors import StoreUnavailable
from src.store.base import CounterStore

log = logging.getLogger(__name__)


class RedisStore(CounterStore):
    """Counters via native ``INCR``; values JSON-encoded.

    Every ``redis.RedisError`` (connection refused, timeout, ...) is
    re-raised as StoreUnavailable so the caller can fall back.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        host: str = "localhost",
        port: int = 6379,
        password: str = "",
        prefix: str = "abuse_guard:",
        timeout_sec: float = 0.5,
    ) -> None:
        self.prefix = prefix
        self._client = client or redis.Redis(
            host=host,
            port=port,
            password=password or None,
            socket_timeout=timeout_sec,
            socket_connect_timeout=timeout_sec,
            decode_responses=True,
        )

    def _k(self, key: str) -> str:
        return self.prefix + key

    def get(self, key: str) -> Any | None:
        try:
            raw = self._client.get(self._k(key))
        except redis.RedisError as exc:
            raise StoreUnavailable(f"get {key}: {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            log.warning("Undecodable value under %s — treated as absent", key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            self._client.set(self._k(key), json.dumps(value), ex=max(1, int(ttl_seconds)))
        except redis.RedisError as exc:
            raise StoreUnavailable(f"set {key}: {exc}") from exc

    def increment(self, key: str, ttl_seconds: int) -> int:
        """INCR and EXPIRE NX in one MULTI/EXEC; the TTL is only set on a new key."""
        full = self._k(key)
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(full)
                pipe.expire(full, max(1, int(ttl_seconds)), nx=True)
                count, _ = pipe.execute()
        except redis.RedisError as exc:
            raise StoreUnavailable(f"incr {key}: {exc}") from exc
        return int(count)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._k(key))
        except redis.RedisError as exc:
            raise StoreUnavailable(f"delete {key}: {exc}") from exc

    def keys(self, prefix: str) -> list[str]:
        try:
            found = list(self._client.scan_iter(match=self._k(prefix) + "*", count=500))
        except redis.RedisError as exc:
            raise StoreUnavailable(f"scan {prefix}: {exc}") from exc
        cut = len(self.prefix)
        return [k[cut:] for k in found]

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as exc:
            log.debug("Redis close failed: %s", exc)
