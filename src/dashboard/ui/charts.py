"""Білдери Plotly графіків."""

from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go

from src.dashboard.ui.cards import SEVERITY_COLORS

# ── chart config (hide toolbar by default) ──────────────────────────────────

CHART_CONFIG: dict = {"displayModeBar": False}

# ── shared layout ───────────────────────────────────────────────────────────

_FONT = dict(family="-apple-system, Segoe UI, Roboto, sans-serif", size=13, color="#c9d1d9")

_LAYOUT: dict = dict(
    template="plotly_dark",
    paper_bgcolor="rgba(0,0,0,0)",
    plot_bgcolor="rgba(0,0,0,0)",
    margin=dict(l=48, r=16, t=44, b=36),
    font=_FONT,
    title=dict(font=dict(size=14, color="#e6edf3"), x=0, xanchor="left", y=0.98, yanchor="top"),
    bargap=0.35,
    height=340,
    showlegend=False,
)

_GRID_COLOR = "rgba(128,128,128,0.10)"


def _base(**overrides: object) -> dict:
    merged = {**_LAYOUT}
    for k, v in overrides.items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            merged[k] = {**merged[k], **v}
        else:
            merged[k] = v
    return merged


# ── alerts by severity ──────────────────────────────────────────────────────


def severity_bar(df: pd.DataFrame) -> go.Figure:
    fig = go.Figure(
        go.Bar(
            x=[s.capitalize() for s in df["severity"]],
            y=df["count"],
            marker_color=[SEVERITY_COLORS.get(s, "#888") for s in df["severity"]],
            marker_line_width=0,
            hovertemplate="%{x}: %{y}<extra></extra>",
            text=df["count"],
            textposition="outside",
            textfont=dict(size=12, color="#e6edf3"),
        )
    )
    fig.update_layout(
        **_base(
            title=dict(text="Alerts by Severity"),
            yaxis=dict(title="", gridcolor=_GRID_COLOR, zeroline=False),
            xaxis=dict(title=""),
        )
    )
    return fig


# ── alerts by pattern ───────────────────────────────────────────────────────


def pattern_bar(df: pd.DataFrame) -> go.Figure | None:
    """Horizontal bar per pattern; None when there is nothing to draw."""
    if df is None or df.empty:
        return None
    df = df.sort_values("count")
    fig = go.Figure(
        go.Bar(
            x=df["count"],
            y=df["pattern"],
            orientation="h",
            marker_color="#8b5cf6",
            marker_line_width=0,
            hovertemplate="%{y}: %{x}<extra></extra>",
        )
    )
    fig.update_layout(
        **_base(
            title=dict(text="Alerts by Pattern"),
            xaxis=dict(title="", gridcolor=_GRID_COLOR, zeroline=False, dtick=1),
            yaxis=dict(title=""),
            height=max(240, 34 * len(df) + 80),
        )
    )
    return fig
