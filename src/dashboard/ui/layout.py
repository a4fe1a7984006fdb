"""Page layout: title bar and the sidebar refresh controls."""

from __future__ import annotations

from datetime import datetime, timezone

import streamlit as st


def render_header() -> None:
    st.markdown(
        '<h1 class="page-title">Security Monitor</h1>'
        '<p class="page-subtitle">'
        "Alerts, blocked identities and file integrity at a glance."
        "</p>",
        unsafe_allow_html=True,
    )


def render_sidebar(alert_log_path: str) -> None:
    """Draw refresh controls; values land in st.session_state."""
    with st.sidebar:
        st.markdown('<p class="sidebar-brand">Security Monitor</p>', unsafe_allow_html=True)
        st.caption(f"Alert log: {alert_log_path}")
        st.divider()

        st.markdown("##### Auto-refresh")
        st.toggle("Enable auto-refresh", key="auto_refresh")
        st.slider(
            "Refresh interval (sec)",
            min_value=5,
            max_value=120,
            step=5,
            key="refresh_interval",
            disabled=not st.session_state.get("auto_refresh", False),
        )

        now_str = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        st.markdown(
            f'<p class="refresh-timestamp">Last refresh: {now_str}</p>',
            unsafe_allow_html=True,
        )
