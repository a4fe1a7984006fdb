"""Counter stores: in-process map, Redis, and the fallback composition."""

from __future__ import annotations

import logging

from src.shared.config_loader import Settings
from src.store.base import CounterStore
from src.store.fallback import FallbackStore
from src.store.memory import InMemoryStore
from src.store.redis_store import RedisStore

log = logging.getLogger(__name__)

__all__ = ["CounterStore", "FallbackStore", "InMemoryStore", "RedisStore", "build_store"]


def build_store(settings: Settings) -> CounterStore:
    """Select the store implementation from configuration."""
    memory = InMemoryStore(
        max_entries=settings.memory_max_entries,
        sweep_interval_sec=settings.memory_sweep_interval,
    )
    if not settings.redis_enabled:
        log.info("Counter store: in-memory (max %d entries)", settings.memory_max_entries)
        return memory
    remote = RedisStore(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        prefix=settings.redis_prefix,
        timeout_sec=settings.redis_timeout_sec,
    )
    log.info("Counter store: redis %s:%d with in-memory fallback", settings.redis_host, settings.redis_port)
    return FallbackStore(remote, memory)
