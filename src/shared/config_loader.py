"""Завантаження конфігурації: YAML файл + змінні оточення."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.contracts.enums import Severity
from src.contracts.rules import CriticalFile, PatternRule
from src.shared.errors import ParseError

log = logging.getLogger(__name__)

DAY_SEC = 86400

# ── built-in detection defaults ──────────────────────────────────────────────

DEFAULT_PATTERNS: list[dict[str, Any]] = [
    {"pattern": "failed login attempt", "severity": "warning", "threshold": 5, "time_window": 300},
    {"pattern": "SQL injection attempt", "severity": "critical", "threshold": 1, "time_window": 60},
    {"pattern": "XSS attempt", "severity": "critical", "threshold": 1, "time_window": 60},
    {"pattern": "CSRF token mismatch", "severity": "high", "threshold": 3, "time_window": 300},
    {"pattern": "file upload rejected", "severity": "warning", "threshold": 3, "time_window": 300},
    {"pattern": "permission denied", "severity": "warning", "threshold": 5, "time_window": 300},
    {"pattern": "brute force", "severity": "critical", "threshold": 1, "time_window": 60},
    {"pattern": "invalid JWT", "severity": "warning", "threshold": 5, "time_window": 300},
    {"pattern": "blocked IP", "severity": "high", "threshold": 1, "time_window": 60},
    {"pattern": "suspicious path access", "severity": "high", "threshold": 3, "time_window": 60},
    {"pattern": "root access attempted", "severity": "critical", "threshold": 1, "time_window": 60},
]

DEFAULT_CRITICAL_FILES: list[dict[str, str]] = [
    {"path": "server.js", "severity": "critical"},
    {"path": "src/utils/auth.js", "severity": "critical"},
    {"path": "src/utils/robust-auth.js", "severity": "critical"},
    {"path": "src/utils/security-logging.js", "severity": "critical"},
    {"path": "src/utils/brute-force-protection.js", "severity": "critical"},
    {"path": "src/routes/auth.js", "severity": "high"},
    {"path": "src/controllers/auth.js", "severity": "high"},
    {"path": "src/middleware/auth.js", "severity": "high"},
    {"path": "config/security.js", "severity": "high"},
    {"path": ".env", "severity": "critical"},
]


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Зчитує YAML файл та повертає його вміст як dict.

    Args:
        path: Шлях до файлу.

    Returns:
        Вміст файлу як словник.

    Raises:
        FileNotFoundError: Якщо файл не знайдено.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    log.debug("Loaded config %s (%d top-level keys)", p.name, len(data or {}))
    return data or {}


# ═══════════════════════════════════════════════════════════════════════════
#  Rule parsing
# ═══════════════════════════════════════════════════════════════════════════


def parse_pattern_rule(raw: Mapping[str, Any]) -> PatternRule:
    """Build one PatternRule; raises ParseError on a malformed entry."""
    try:
        pattern = str(raw["pattern"]).strip()
        severity = Severity.parse(raw.get("severity") or raw.get("level") or "warning").value
        threshold = int(raw.get("threshold", 1))
        window = int(raw.get("time_window", raw.get("time_window_seconds", 60)))
        rule = PatternRule(
            pattern=pattern,
            severity=severity,
            threshold=threshold,
            time_window_seconds=window,
            regex=bool(raw.get("regex", False)),
        )
    except (KeyError, TypeError, ValueError, re.error) as exc:
        raise ParseError(f"invalid pattern rule {dict(raw)!r}: {exc}") from exc
    if not pattern or threshold < 1 or window < 1:
        raise ParseError(f"invalid pattern rule {dict(raw)!r}: empty pattern or non-positive limits")
    return rule


def parse_pattern_rules(raw_rules: list[Any]) -> list[PatternRule]:
    """Parse a list of rule dicts, skipping (and logging) malformed entries."""
    rules: list[PatternRule] = []
    for raw in raw_rules or []:
        if not isinstance(raw, Mapping):
            log.warning("Skipping pattern rule that is not a mapping: %r", raw)
            continue
        try:
            rules.append(parse_pattern_rule(raw))
        except ParseError as exc:
            log.warning("Skipping %s", exc)
    return rules


def parse_critical_files(raw_files: list[Any]) -> list[CriticalFile]:
    files: list[CriticalFile] = []
    for raw in raw_files or []:
        if isinstance(raw, str):
            files.append(CriticalFile(path=raw))
            continue
        if not isinstance(raw, Mapping) or not raw.get("path"):
            log.warning("Skipping critical file entry: %r", raw)
            continue
        try:
            sev = Severity.parse(raw.get("severity") or raw.get("level") or "critical").value
        except ValueError:
            log.warning("Unknown severity in critical file entry %r — using critical", raw)
            sev = Severity.CRITICAL.value
        files.append(CriticalFile(path=str(raw["path"]), severity=sev))
    return files


# ═══════════════════════════════════════════════════════════════════════════
#  Settings
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class EmailSettings:
    enabled: bool = False
    host: str = "smtp.example.com"
    port: int = 587
    secure: bool = False
    user: str = ""
    password: str = ""
    sender: str = ""
    recipients: list[str] = field(default_factory=list)


@dataclass
class WebhookSettings:
    enabled: bool = False
    url: str = ""
    channel: str = "#security-alerts"


@dataclass
class SmsSettings:
    enabled: bool = False
    provider: str = "twilio"
    account_sid: str = ""
    auth_token: str = ""
    sender: str = ""
    recipients: list[str] = field(default_factory=list)


@dataclass
class Settings:
    """Повна конфігурація двигуна; всі значення мають дефолти."""

    # ── guards ──
    max_login_attempts: int = 5
    max_api_attempts: int = 100
    max_ip_attempts: int = 1000
    account_lock_duration: int = 1800
    ip_lock_duration: int = 3600
    max_lock_duration: int = 7 * DAY_SEC
    escalation_window: int = 30 * DAY_SEC
    captcha_threshold: int = 3
    base_delay_ms: int = 100
    max_delay_ms: int = 10000
    api_window_sec: int = 60
    endpoint_limits: dict[str, int] = field(default_factory=dict)

    # ── store ──
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_prefix: str = "abuse_guard:"
    redis_timeout_sec: float = 0.5
    memory_max_entries: int = 10000
    memory_sweep_interval: int = 3600

    # ── monitors ──
    logs_dir: str = "logs/security"
    log_glob: str = "*.log"
    log_level: str = "INFO"
    tail_lines: int = 10
    prune_interval: int = 60
    integrity_interval: int = 3600
    integrity_root: str = "."
    patterns: list[PatternRule] = field(default_factory=lambda: parse_pattern_rules(DEFAULT_PATTERNS))
    critical_files: list[CriticalFile] = field(
        default_factory=lambda: parse_critical_files(DEFAULT_CRITICAL_FILES)
    )

    # ── alerting / stats ──
    email: EmailSettings = field(default_factory=EmailSettings)
    webhook: WebhookSettings = field(default_factory=WebhookSettings)
    sms: SmsSettings = field(default_factory=SmsSettings)
    stats_ttl: float = 10.0
    recent_alerts: int = 10

    @property
    def alert_log_path(self) -> Path:
        return Path(self.logs_dir) / "security-alerts.log"

    @property
    def monitor_log_path(self) -> Path:
        return Path(self.logs_dir) / "security-monitor.log"

    # ── construction ─────────────────────────────────────────────────────

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        config_path: str | Path | None = None,
    ) -> Settings:
        """Defaults, overlaid by the YAML file, overlaid by environment keys."""
        env = os.environ if environ is None else environ
        s = cls()
        if config_path is not None:
            s.apply_yaml(load_yaml(config_path))

        s.max_login_attempts = _env_int(env, "MAX_LOGIN_ATTEMPTS", s.max_login_attempts)
        s.max_api_attempts = _env_int(env, "MAX_API_ATTEMPTS", s.max_api_attempts)
        s.max_ip_attempts = _env_int(env, "MAX_IP_ATTEMPTS", s.max_ip_attempts)
        s.account_lock_duration = _env_int(env, "ACCOUNT_LOCK_DURATION", s.account_lock_duration)
        s.ip_lock_duration = _env_int(env, "IP_LOCK_DURATION", s.ip_lock_duration)
        s.captcha_threshold = _env_int(env, "CAPTCHA_THRESHOLD", s.captcha_threshold)

        s.redis_enabled = _env_bool(env, "REDIS_ENABLED", s.redis_enabled)
        s.redis_host = env.get("REDIS_HOST", s.redis_host)
        s.redis_port = _env_int(env, "REDIS_PORT", s.redis_port)
        s.redis_password = env.get("REDIS_PASSWORD", s.redis_password)

        s.logs_dir = env.get("SECURITY_LOGS_DIR", s.logs_dir)
        s.log_level = env.get("SECURITY_LOG_LEVEL", s.log_level)
        s.integrity_interval = _env_int(env, "INTEGRITY_CHECK_INTERVAL", s.integrity_interval)

        e = s.email
        e.enabled = _env_bool(env, "EMAIL_ALERTS_ENABLED", e.enabled)
        e.host = env.get("EMAIL_HOST", e.host)
        e.port = _env_int(env, "EMAIL_PORT", e.port)
        e.secure = _env_bool(env, "EMAIL_SECURE", e.secure)
        e.user = env.get("EMAIL_USER", e.user)
        e.password = env.get("EMAIL_PASS", e.password)
        e.sender = env.get("EMAIL_FROM", e.sender or e.user)
        e.recipients = _env_list(env, "EMAIL_TO", e.recipients)

        w = s.webhook
        w.enabled = _env_bool(env, "SLACK_ALERTS_ENABLED", w.enabled)
        w.url = env.get("SLACK_WEBHOOK_URL", w.url)
        w.channel = env.get("SLACK_CHANNEL", w.channel)

        m = s.sms
        m.enabled = _env_bool(env, "SMS_ALERTS_ENABLED", m.enabled)
        m.provider = env.get("SMS_PROVIDER", m.provider)
        m.account_sid = env.get("TWILIO_ACCOUNT_SID", m.account_sid)
        m.auth_token = env.get("TWILIO_AUTH_TOKEN", m.auth_token)
        m.sender = env.get("TWILIO_PHONE_NUMBER", m.sender)
        m.recipients = _env_list(env, "SMS_TO", m.recipients)

        log.info(
            "Settings: login=%d api=%d ip=%d lock=%ds/%ds redis=%s patterns=%d files=%d",
            s.max_login_attempts,
            s.max_api_attempts,
            s.max_ip_attempts,
            s.account_lock_duration,
            s.ip_lock_duration,
            "on" if s.redis_enabled else "off",
            len(s.patterns),
            len(s.critical_files),
        )
        return s

    def apply_yaml(self, cfg: Mapping[str, Any]) -> None:
        """Overlay values from a parsed monitor.yaml.

        Each value is coerced to the type of the field it replaces; an
        entry that cannot be coerced is logged and the current value kept.
        """
        if not isinstance(cfg, Mapping):
            log.warning("Config root is %s, expected a mapping — ignored", type(cfg).__name__)
            return

        for section in ("guard", "store", "monitor", "stats"):
            for key, value in _section(cfg, section).items():
                if key in ("patterns", "critical_files"):
                    continue
                if key == "endpoint_limits" or not hasattr(self, key):
                    log.warning("Unknown %s setting '%s' ignored", section, key)
                    continue
                _overlay(self, key, value, f"{section}.{key}")

        monitor = _section(cfg, "monitor")
        if monitor.get("patterns") is not None:
            self.patterns = parse_pattern_rules(_as_list(monitor["patterns"], "monitor.patterns"))
        if monitor.get("critical_files") is not None:
            self.critical_files = parse_critical_files(
                _as_list(monitor["critical_files"], "monitor.critical_files")
            )

        if "endpoint_limits" in cfg:
            self.endpoint_limits = parse_endpoint_limits(cfg["endpoint_limits"])

        alerts = _section(cfg, "alerts")
        for name, target in (("email", self.email), ("webhook", self.webhook), ("sms", self.sms)):
            for key, value in _section(alerts, name, prefix="alerts.").items():
                if hasattr(target, key):
                    _overlay(target, key, value, f"alerts.{name}.{key}")
                else:
                    log.warning("Unknown alerts.%s setting '%s' ignored", name, key)


# ── YAML coercion ───────────────────────────────────────────────────────────

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


class _Invalid(Exception):
    pass


def _section(cfg: Mapping[str, Any], name: str, prefix: str = "") -> Mapping[str, Any]:
    value = cfg.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        log.warning("Config section '%s%s' is not a mapping — ignored", prefix, name)
        return {}
    return value


def _as_list(value: Any, label: str) -> list[Any]:
    if isinstance(value, list):
        return value
    log.warning("%s is not a list — ignored", label)
    return []


def _split_list(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _coerce(current: Any, value: Any) -> Any:
    """Convert a YAML scalar to the type of *current*; raise _Invalid otherwise."""
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise _Invalid
    if isinstance(current, int):
        if isinstance(value, bool):
            raise _Invalid
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                raise _Invalid from None
        raise _Invalid
    if isinstance(current, float):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise _Invalid
        try:
            return float(value)
        except ValueError:
            raise _Invalid from None
    if isinstance(current, str):
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise _Invalid
    if isinstance(current, list):
        if isinstance(value, str):
            return _split_list(value)
        if isinstance(value, list) and all(isinstance(v, (str, int)) for v in value):
            return [str(v).strip() for v in value if str(v).strip()]
        raise _Invalid
    raise _Invalid


def _overlay(target: Any, key: str, value: Any, label: str) -> None:
    current = getattr(target, key)
    try:
        setattr(target, key, _coerce(current, value))
    except _Invalid:
        log.warning("%s=%r is not a valid %s — keeping %r", label, value, type(current).__name__, current)


def parse_endpoint_limits(raw: Any) -> dict[str, int]:
    """Per-path request limits; entries that are not positive integers are skipped."""
    if not isinstance(raw, Mapping):
        if raw is not None:
            log.warning("endpoint_limits is not a mapping — ignored")
        return {}
    limits: dict[str, int] = {}
    for path, value in raw.items():
        try:
            limit = _coerce(0, value)
        except _Invalid:
            limit = 0
        if limit < 1:
            log.warning("Skipping endpoint limit %s=%r: not a positive integer", path, value)
            continue
        limits[str(path)] = limit
    return limits


# ── env helpers ─────────────────────────────────────────────────────────────


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("%s=%r is not an integer — using default %d", key, raw, default)
        return default


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(env: Mapping[str, str], key: str, default: list[str]) -> list[str]:
    raw = env.get(key)
    if raw is None:
        return default
    return _split_list(raw)
