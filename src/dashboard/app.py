"""Головний файл дашборду безпеки на Streamlit.

streamlit run src/dashboard/app.py
"""

from __future__ import annotations

import json
from datetime import timedelta

import streamlit as st

# ── page config (MUST be the first Streamlit call) ───────────────────────────

st.set_page_config(
    page_title="Security Monitor Dashboard",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ── local imports (after page config) ───────────────────────────────────────

from src.alerting.stats import StatsAggregator  # noqa: E402
from src.dashboard.data_access import (  # noqa: E402
    active_buckets_frame,
    build_aggregator,
    integrity_violations_frame,
    load_stats,
    pattern_frame,
    recent_alerts_frame,
    severity_frame,
)
from src.dashboard.ui.cards import integrity_card, kpi_card, severity_card  # noqa: E402
from src.dashboard.ui.charts import CHART_CONFIG, pattern_bar, severity_bar  # noqa: E402
from src.dashboard.ui.layout import render_header, render_sidebar  # noqa: E402
from src.dashboard.ui.state import init_state  # noqa: E402
from src.dashboard.ui.tables import render_alert_table  # noqa: E402


@st.cache_resource
def _aggregator() -> StatsAggregator:
    return build_aggregator()


init_state()
render_sidebar(str(_aggregator().alert_log.path))
render_header()


_auto = st.session_state.get("auto_refresh", False)
_interval = st.session_state.get("refresh_interval", 10)


@st.fragment(run_every=timedelta(seconds=_interval) if _auto else None)
def _live_data_section() -> None:
    stats = load_stats(_aggregator())
    if stats is None:
        st.markdown(
            '<div class="no-data-box">'
            "<strong>Stats are not available.</strong> "
            "Check that the alert log directory is readable."
            "</div>",
            unsafe_allow_html=True,
        )
        return

    # ── KPI CARDS ───────────────────────────────────────────────────
    sev_df = severity_frame(stats)
    brute = stats.get("brute_force", {})
    integrity = stats.get("integrity", {})

    cols = st.columns(len(sev_df) + 3)
    for col, (_, row) in zip(cols, sev_df.iterrows()):
        with col:
            st.markdown(severity_card(row["severity"], int(row["count"])), unsafe_allow_html=True)
    with cols[-3]:
        st.markdown(kpi_card("Blocked IPs", brute.get("blocked_ips", 0), "#ef4444"), unsafe_allow_html=True)
    with cols[-2]:
        st.markdown(kpi_card("Blocked users", brute.get("blocked_users", 0), "#f97316"),
                    unsafe_allow_html=True)
    with cols[-1]:
        st.markdown(
            integrity_card(integrity.get("status", "unknown"), integrity.get("file_count", 0),
                           integrity.get("last_check")),
            unsafe_allow_html=True,
        )

    # ── CHARTS ──────────────────────────────────────────────────────
    st.markdown('<div class="section-gap"></div>', unsafe_allow_html=True)
    c1, c2 = st.columns(2)
    with c1:
        st.plotly_chart(severity_bar(sev_df), width="stretch", config=CHART_CONFIG, key="chart_sev")
    with c2:
        fig = pattern_bar(pattern_frame(stats))
        if fig is not None:
            st.plotly_chart(fig, width="stretch", config=CHART_CONFIG, key="chart_patterns")
        else:
            st.info("No alerts by pattern yet.")

    # ── RECENT ALERTS ───────────────────────────────────────────────
    st.markdown('<p class="section-label">Recent Alerts</p>', unsafe_allow_html=True)
    render_alert_table(recent_alerts_frame(stats))

    # ── LIVE BUCKETS / INTEGRITY ────────────────────────────────────
    if _aggregator().patterns is not None:
        b1, b2 = st.columns(2)
        with b1:
            st.markdown('<p class="section-label">Active Pattern Windows</p>', unsafe_allow_html=True)
            buckets = active_buckets_frame(stats)
            if buckets.empty:
                st.caption("No open pattern windows.")
            else:
                st.dataframe(buckets, hide_index=True, width="stretch")
    else:
        b2 = st.container()
    with b2:
        st.markdown('<p class="section-label">Integrity Violations (24 h)</p>', unsafe_allow_html=True)
        violations = integrity_violations_frame(stats)
        if violations.empty:
            st.caption("No integrity violations recorded.")
        else:
            st.dataframe(violations, hide_index=True, width="stretch")

    with st.expander("Raw stats snapshot", expanded=False):
        st.code(json.dumps(stats, indent=2, ensure_ascii=False), language="json")


_live_data_section()
