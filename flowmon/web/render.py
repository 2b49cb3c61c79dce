from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple

from ..core.monitor import MonitorState, MonitorStatus


UNAVAILABLE_TEXT = "N/A (waiting for data)"

COLORS = {
    "bg_dark": "#0a0a0f",
    "bg_medium": "#1a1a2e",
    "text_primary": "#ffffff",
    "text_secondary": "#b8b8b8",
    "up": "#00ff88",
    "down": "#ff006e",
    "flat": "#ffffff",
    "cyan": "#00d4ff",
    "yellow": "#ffbe0b",
    "magenta": "#9d4edd",
}


def change_color(value: Optional[float]) -> str:
    if value is None:
        return COLORS["text_secondary"]
    if value > 0:
        return COLORS["up"]
    if value < 0:
        return COLORS["down"]
    return COLORS["flat"]


def format_change(value: Optional[float], suffix: str = "") -> str:
    """Signed two-decimal figure; ``None`` means no history for that window."""
    if value is None:
        return UNAVAILABLE_TEXT
    sign = "+" if value > 0 else ""
    return f"{sign}{value:,.2f}{suffix}"


def format_balance(value: Optional[float]) -> Tuple[str, str]:
    """Split a balance into whole and fractional display parts."""
    if value is None:
        return "--", "--"
    whole, _, frac = f"{value:,.2f}".partition(".")
    return whole, frac


def format_tracking_age(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} minutes"
    hours, mins = divmod(minutes, 60)
    if hours < 24:
        return f"{hours}h {mins}m"
    days, hours = divmod(hours, 24)
    return f"{days}d {hours}h"


def format_timestamp(ts_ms: Optional[int]) -> str:
    if ts_ms is None:
        return "never"
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def status_text(status: MonitorStatus) -> Tuple[str, str]:
    """Return (label, color) for the footer."""
    if status.state == MonitorState.ERROR:
        return f"STALE: {status.last_error}", COLORS["down"]
    if status.state in (MonitorState.UPDATING, MonitorState.STARTING):
        return "UPDATING...", COLORS["yellow"]
    return "LIVE", COLORS["up"]
