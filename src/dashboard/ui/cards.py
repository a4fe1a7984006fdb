"""Білдери HTML KPI карток."""

from __future__ import annotations

# ── canonical severity / status colours ─────────────────────────────────────

SEVERITY_COLORS: dict[str, str] = {
    "critical": "#ef4444",
    "high": "#f97316",
    "warning": "#f59e0b",
    "info": "#3b82f6",
}

INTEGRITY_COLORS: dict[str, str] = {
    "ok": "#22c55e",
    "violated": "#ef4444",
    "unknown": "#8b949e",
}


def kpi_card(title: str, value: str | int, color: str = "#8b949e", subtitle: str = "") -> str:
    """Одна KPI картка з кольоровим акцентом зліва."""
    sub = f'<div class="kpi-card-sub">{subtitle}</div>' if subtitle else ""
    return (
        f'<div class="kpi-card" style="border-left: 4px solid {color}; padding: 0.6rem 0.9rem;">'
        f'  <div class="kpi-card-title" style="font-size: 0.8rem; opacity: 0.75;">{title}</div>'
        f'  <div class="kpi-card-value" style="font-size: 1.8rem; font-weight: 600;">{value}</div>'
        f"  {sub}"
        f"</div>"
    )


def severity_card(severity: str, count: int) -> str:
    return kpi_card(severity.capitalize(), count, SEVERITY_COLORS.get(severity, "#888"), "alerts (last 100)")


def integrity_card(status: str, file_count: int, last_check: str | None) -> str:
    sub = f"{file_count} files · last check {last_check or 'never'}"
    return kpi_card("File integrity", status.upper(), INTEGRITY_COLORS.get(status, "#888"), sub)
