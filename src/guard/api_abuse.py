"""ApiAbuseGuard — per-IP and per-route request-rate limits.

Two fixed rolling windows per request (default 60 s):
  api:ip:<addr>:requests                  — global; over the limit blocks the IP
  api:ip:<addr>:endpoint:<path>:<method>  — per route; over the limit denies only

IP blocks go through BruteForceGuard.block so both guards share one
``block:ip:<addr>`` record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.guard import keys
from src.guard.brute_force import BruteForceGuard
from src.shared.errors import StoreUnavailable

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ApiCheck:
    allowed: bool
    status: int | None = None  # 429 when denied
    error: str = ""
    requests: int = 0
    endpoint_requests: int = 0
    degraded: bool = False


class ApiAbuseGuard:
    def __init__(self, brute_force: BruteForceGuard) -> None:
        self.brute_force = brute_force
        self.store = brute_force.store
        self.settings = brute_force.settings

    def endpoint_limit(self, path: str) -> int:
        override = self.settings.endpoint_limits.get(path)
        if override is not None:
            return int(override)
        return self.settings.max_api_attempts // 2

    def check_request(self, ip: str, path: str, method: str = "GET") -> ApiCheck:
        addr = keys.ip_id(ip)
        window = self.settings.api_window_sec
        try:
            if self.brute_force.is_blocked(addr):
                log.warning("Blocked API request from blocked IP %s %s %s", ip, method, path)
                return ApiCheck(allowed=False, status=429,
                                error="Too many requests. Please try again later.")

            total = self.store.increment(keys.api_requests_key(ip), window)
            per_route = self.store.increment(keys.api_endpoint_key(ip, path, method), window)

            if total > self.settings.max_api_attempts:
                self.brute_force.block(addr, self.settings.ip_lock_duration,
                                       reason="max_api_requests", attempts=total)
                return ApiCheck(
                    allowed=False,
                    status=429,
                    error="Rate limit exceeded. Your IP has been temporarily blocked.",
                    requests=total,
                    endpoint_requests=per_route,
                )

            if per_route > self.endpoint_limit(path):
                log.warning("Endpoint rate limit exceeded: %s %s %s (%d)", ip, method, path, per_route)
                return ApiCheck(
                    allowed=False,
                    status=429,
                    error="Rate limit exceeded for this endpoint. Please try again later.",
                    requests=total,
                    endpoint_requests=per_route,
                )

            return ApiCheck(allowed=True, requests=total, endpoint_requests=per_route)
        except StoreUnavailable as exc:
            log.warning("Store unavailable in API guard for %s — allowing once: %s", ip, exc)
            return ApiCheck(allowed=True, degraded=True)
