"""Відображення таблиці алертів."""

from __future__ import annotations

import pandas as pd
import streamlit as st
from streamlit import column_config as colcfg

_COL_LABELS = {
    "timestamp": "Time",
    "level": "Level",
    "pattern": "Pattern",
    "message": "Message",
    "source": "Source",
    "count": "Count",
}

_COL_CONFIG = {
    "Time": colcfg.DatetimeColumn("Time", format="MMM DD, YYYY  HH:mm:ss"),
    "Count": colcfg.NumberColumn("Count", format="%d"),
}


def render_alert_table(df: pd.DataFrame, key: str = "tbl_alerts") -> None:
    """Recent alerts, newest first; sortable via the column headers."""
    if df.empty:
        st.info("No alerts recorded yet.")
        return

    view = df.rename(columns=_COL_LABELS)
    st.caption(f"Showing {len(view)} most recent alerts")
    st.dataframe(
        view,
        hide_index=True,
        width="stretch",
        height=min(len(view) * 36 + 42, 600),
        column_config=_COL_CONFIG,
        key=key,
    )
