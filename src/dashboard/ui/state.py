"""Ініціалізація стану сесії."""

from __future__ import annotations

import os

import streamlit as st

_LIVE_MODE = os.environ.get("SECURITY_DASHBOARD_LIVE", "") == "1"

_DEFAULTS: dict[str, object] = {
    "auto_refresh": _LIVE_MODE,
    "refresh_interval": 10,
}


def init_state() -> None:
    """Заповнює st.session_state значеннями за замовчуванням."""
    for key, value in _DEFAULTS.items():
        if key not in st.session_state:
            st.session_state[key] = value
