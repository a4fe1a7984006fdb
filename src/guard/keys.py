"""Store key layout shared by both guards.

  block:<kind>:<id>                         active BlockRecord (shared)
  bf:<kind>:<id>:attempts                   failed-login counter
  bf:<kind>:<id>:block_count                escalation counter (30 days)
  api:ip:<addr>:requests                    global API request counter
  api:ip:<addr>:endpoint:<path>:<method>    per-route request counter
"""

from __future__ import annotations

USER = "user"
IP = "ip"


def user_id(username: str) -> str:
    return f"{USER}:{username}"


def ip_id(addr: str) -> str:
    return f"{IP}:{addr}"


def kind_of(identifier: str) -> str:
    return identifier.split(":", 1)[0]


def block_key(identifier: str) -> str:
    return f"block:{identifier}"


def attempts_key(identifier: str) -> str:
    return f"bf:{identifier}:attempts"


def escalation_key(identifier: str) -> str:
    return f"bf:{identifier}:block_count"


def api_requests_key(addr: str) -> str:
    return f"api:ip:{addr}:requests"


def api_endpoint_key(addr: str, path: str, method: str) -> str:
    return f"api:ip:{addr}:endpoint:{path}:{method.upper()}"
