"""Outbound alert channels: email (SMTP), chat webhook, SMS (Twilio).

Level routing
─────────────
  email    — warning, high, critical
  webhook  — every level
  sms      — critical only

Constructors raise ConfigurationError when required credentials are
missing; ``build_channels`` turns that into a disabled channel and a
warning. ``send`` raises ChannelDispatchError on delivery failure.
"""

from __future__ import annotations

import abc
import html
import logging
import smtplib
from email.message import EmailMessage

import requests

from src.contracts.alert import AlertEvent
from src.shared.config_loader import EmailSettings, Settings, SmsSettings, WebhookSettings
from src.shared.errors import ChannelDispatchError, ConfigurationError

log = logging.getLogger(__name__)

_SUBJECT_PREFIX = {"critical": "[CRITICAL] ", "high": "[ALERT] ", "warning": "[WARNING] "}
_SLACK_COLOR = {"critical": "#FF0000", "high": "#FFA500", "warning": "#FFFF00"}
_TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
_SMS_MAX_CHARS = 300


class AlertChannel(abc.ABC):
    name: str = "channel"
    levels: frozenset[str] = frozenset({"info", "warning", "high", "critical"})

    def accepts(self, level: str) -> bool:
        return level in self.levels

    @abc.abstractmethod
    def send(self, alert: AlertEvent) -> None:
        """Deliver *alert*; raise ChannelDispatchError on failure."""


# ═══════════════════════════════════════════════════════════════════════════
#  Email
# ═══════════════════════════════════════════════════════════════════════════


class EmailChannel(AlertChannel):
    name = "email"
    levels = frozenset({"warning", "high", "critical"})

    def __init__(self, cfg: EmailSettings, timeout_sec: float = 10.0) -> None:
        missing = [n for n, v in (("host", cfg.host), ("from", cfg.sender),
                                  ("to", cfg.recipients)) if not v]
        if missing:
            raise ConfigurationError(f"email channel missing: {', '.join(missing)}")
        self.cfg = cfg
        self.timeout_sec = timeout_sec

    def build_message(self, alert: AlertEvent) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = f"{_SUBJECT_PREFIX.get(alert.level, '')}Security alert: {alert.pattern}"
        msg["From"] = self.cfg.sender
        msg["To"] = ", ".join(self.cfg.recipients)

        lines = [
            f"Security alert: {alert.pattern}",
            f"Level: {alert.level}",
            f"Timestamp: {alert.timestamp}",
            f"Message: {alert.message}",
            f"Source: {alert.source}",
            f"Occurrences: {alert.count} in {alert.time_window_seconds}s",
            "",
        ]
        lines += [f"- {o.timestamp}: {o.message}" for o in alert.occurrences]
        msg.set_content("\n".join(lines))

        items = "".join(
            f"<li><strong>{html.escape(o.timestamp)}</strong>: {html.escape(o.message)}</li>"
            for o in alert.occurrences
        )
        msg.add_alternative(
            f"<h2>Security alert: {html.escape(alert.pattern)}</h2>"
            f"<p><strong>Level:</strong> {html.escape(alert.level)}</p>"
            f"<p><strong>Timestamp:</strong> {html.escape(alert.timestamp)}</p>"
            f"<p><strong>Message:</strong> {html.escape(alert.message)}</p>"
            f"<p><strong>Source:</strong> {html.escape(alert.source)}</p>"
            f"<p><strong>Occurrences:</strong> {alert.count} in {alert.time_window_seconds}s</p>"
            f"<h3>Occurrence details</h3><ul>{items}</ul>",
            subtype="html",
        )
        return msg

    def send(self, alert: AlertEvent) -> None:
        msg = self.build_message(alert)
        try:
            if self.cfg.secure:
                smtp: smtplib.SMTP = smtplib.SMTP_SSL(self.cfg.host, self.cfg.port,
                                                      timeout=self.timeout_sec)
            else:
                smtp = smtplib.SMTP(self.cfg.host, self.cfg.port, timeout=self.timeout_sec)
            with smtp:
                if not self.cfg.secure:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls()
                        smtp.ehlo()
                if self.cfg.user:
                    smtp.login(self.cfg.user, self.cfg.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise ChannelDispatchError(self.name, str(exc)) from exc
        log.info("Alert email sent to %d recipient(s)", len(self.cfg.recipients))


# ═══════════════════════════════════════════════════════════════════════════
#  Chat webhook
# ═══════════════════════════════════════════════════════════════════════════


class WebhookChannel(AlertChannel):
    name = "webhook"

    def __init__(
        self,
        cfg: WebhookSettings,
        session: requests.Session | None = None,
        timeout_sec: float = 5.0,
    ) -> None:
        if not cfg.url:
            raise ConfigurationError("webhook channel missing: url")
        self.cfg = cfg
        self.timeout_sec = timeout_sec
        self._http = session or requests.Session()

    def build_payload(self, alert: AlertEvent) -> dict:
        return {
            "channel": self.cfg.channel,
            "username": "Security Monitor",
            "icon_emoji": ":shield:",
            "attachments": [
                {
                    "color": _SLACK_COLOR.get(alert.level, "#00FF00"),
                    "title": f"Security alert: {alert.pattern}",
                    "text": alert.message,
                    "fields": [
                        {"title": "Level", "value": alert.level, "short": True},
                        {"title": "Timestamp", "value": alert.timestamp, "short": True},
                        {"title": "Source", "value": alert.source, "short": True},
                        {
                            "title": "Occurrences",
                            "value": f"{alert.count} in {alert.time_window_seconds}s",
                            "short": True,
                        },
                    ],
                    "footer": "Security monitoring",
                }
            ],
        }

    def send(self, alert: AlertEvent) -> None:
        try:
            resp = self._http.post(self.cfg.url, json=self.build_payload(alert),
                                   timeout=self.timeout_sec)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ChannelDispatchError(self.name, str(exc)) from exc
        log.info("Alert posted to webhook (%s)", alert.pattern)


# ═══════════════════════════════════════════════════════════════════════════
#  SMS
# ═══════════════════════════════════════════════════════════════════════════


class SmsChannel(AlertChannel):
    name = "sms"
    levels = frozenset({"critical"})

    def __init__(
        self,
        cfg: SmsSettings,
        session: requests.Session | None = None,
        timeout_sec: float = 10.0,
    ) -> None:
        if cfg.provider != "twilio":
            raise ConfigurationError(f"unsupported SMS provider '{cfg.provider}'")
        missing = [n for n, v in (("account_sid", cfg.account_sid), ("auth_token", cfg.auth_token),
                                  ("from", cfg.sender), ("to", cfg.recipients)) if not v]
        if missing:
            raise ConfigurationError(f"sms channel missing: {', '.join(missing)}")
        self.cfg = cfg
        self.timeout_sec = timeout_sec
        self._http = session or requests.Session()

    def send(self, alert: AlertEvent) -> None:
        url = _TWILIO_URL.format(sid=self.cfg.account_sid)
        body = f"[{alert.level.upper()}] {alert.message}"[:_SMS_MAX_CHARS]
        failed: list[str] = []
        for to in self.cfg.recipients:
            try:
                resp = self._http.post(
                    url,
                    data={"From": self.cfg.sender, "To": to, "Body": body},
                    auth=(self.cfg.account_sid, self.cfg.auth_token),
                    timeout=self.timeout_sec,
                )
                resp.raise_for_status()
            except requests.RequestException as exc:
                log.warning("SMS to %s failed: %s", to, exc)
                failed.append(to)
        if failed:
            raise ChannelDispatchError(self.name, f"failed recipients: {', '.join(failed)}")
        log.info("Alert SMS sent to %d recipient(s)", len(self.cfg.recipients))


def build_channels(settings: Settings) -> list[AlertChannel]:
    """Instantiate every enabled channel; misconfigured ones are disabled."""
    channels: list[AlertChannel] = []
    candidates = (
        (settings.email.enabled, lambda: EmailChannel(settings.email)),
        (settings.webhook.enabled, lambda: WebhookChannel(settings.webhook)),
        (settings.sms.enabled, lambda: SmsChannel(settings.sms)),
    )
    for enabled, factory in candidates:
        if not enabled:
            continue
        try:
            channels.append(factory())
        except ConfigurationError as exc:
            log.warning("Alert channel disabled: %s", exc)
    log.info("Alert channels enabled: %s", ", ".join(c.name for c in channels) or "none")
    return channels
