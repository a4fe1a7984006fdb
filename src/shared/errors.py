"""Error taxonomy for the guard / monitor engine.

None of these are meant to reach the host application: every component
catches them at its own boundary and degrades (fallback store, skipped
line, disabled channel) instead of stopping.
"""

from __future__ import annotations


class GuardError(Exception):
    """Base class for all engine errors."""


class StoreUnavailable(GuardError):
    """The counter backend could not be reached (connection error, timeout)."""


class ParseError(GuardError):
    """A log line or configuration entry could not be interpreted."""


class ChannelDispatchError(GuardError):
    """An alert channel failed to deliver a message."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel


class FileAccessError(GuardError):
    """A monitored file exists but could not be read."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ConfigurationError(GuardError):
    """Required settings are missing or invalid (e.g. channel credentials)."""
