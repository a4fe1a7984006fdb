"""Framework-agnostic request filters over the two guards.

The hosting web framework builds a RequestContext per request, calls the
filter, and either short-circuits with ``decision.status`` /
``decision.body`` or continues. After a login filter allows a request the
authentication code calls ``request.context["brute_force"].record_success()``
or ``.record_failure()`` once it knows the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from src.contracts.block import AttemptResult
from src.guard import keys
from src.guard.api_abuse import ApiAbuseGuard
from src.guard.brute_force import BruteForceGuard
from src.shared.errors import StoreUnavailable

log = logging.getLogger(__name__)

ALLOW = "allow"
DENY = "deny"


@dataclass(slots=True)
class RequestContext:
    ip: str
    path: str = "/"
    method: str = "GET"
    username: str = ""
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class FilterDecision:
    action: str  # allow | deny
    status: int | None = None  # 403 | 429 on deny
    body: dict[str, Any] = field(default_factory=dict)
    delay_ms: int = 0
    require_captcha: bool = False

    @property
    def allowed(self) -> bool:
        return self.action == ALLOW

    @classmethod
    def allow(cls, *, delay_ms: int = 0, require_captcha: bool = False) -> FilterDecision:
        return cls(action=ALLOW, delay_ms=delay_ms, require_captcha=require_captcha)

    @classmethod
    def deny(cls, status: int, error: str, *, require_captcha: bool | None = None) -> FilterDecision:
        body: dict[str, Any] = {"error": error}
        if require_captcha is not None:
            body["requireCaptcha"] = require_captcha
        return cls(action=DENY, status=status, body=body, require_captcha=bool(require_captcha))


class LoginCallbacks:
    """Outcome hooks attached to an allowed login request."""

    def __init__(self, guard: BruteForceGuard, username: str, ip: str) -> None:
        self._guard = guard
        self.username = username
        self.ip = ip

    def record_success(self) -> AttemptResult:
        return self._guard.record_login(self.username, self.ip, True)

    def record_failure(self) -> AttemptResult:
        return self._guard.record_login(self.username, self.ip, False)


class LoginFilter:
    """Gate for authentication routes (403 on an active block)."""

    context_key = "brute_force"

    def __init__(self, guard: BruteForceGuard) -> None:
        self.guard = guard

    def __call__(self, request: RequestContext) -> FilterDecision:
        username = request.username or "unknown"
        ip = request.ip or "unknown"
        attempts = 0
        try:
            if self.guard.is_blocked(keys.user_id(username)):
                log.warning("Blocked login attempt from blocked user %s (ip %s)", username, ip)
                return FilterDecision.deny(
                    403,
                    "Too many failed login attempts. Account temporarily locked.",
                    require_captcha=True,
                )
            if self.guard.is_blocked(keys.ip_id(ip)):
                log.warning("Blocked login attempt from blocked IP %s (user %s)", ip, username)
                return FilterDecision.deny(
                    403,
                    "Too many requests from this IP. Please try again later.",
                    require_captcha=True,
                )
            attempts = self.guard.failed_attempts(keys.user_id(username))
        except StoreUnavailable as exc:
            log.error("Login filter store error for %s/%s — allowing: %s", username, ip, exc)

        request.context[self.context_key] = LoginCallbacks(self.guard, username, ip)
        return FilterDecision.allow(
            delay_ms=self.guard.progressive_delay_ms(attempts),
            require_captcha=attempts >= self.guard.settings.captcha_threshold,
        )


class ApiFilter:
    """Gate for general API routes (429 on rate limit or IP block)."""

    def __init__(self, guard: ApiAbuseGuard) -> None:
        self.guard = guard

    def __call__(self, request: RequestContext) -> FilterDecision:
        check = self.guard.check_request(request.ip or "unknown", request.path, request.method)
        if check.allowed:
            return FilterDecision.allow()
        return FilterDecision.deny(check.status or 429, check.error)
