from __future__ import annotations

from flowmon.core.monitor import MonitorState, MonitorStatus
from flowmon.web.render import (
    COLORS,
    UNAVAILABLE_TEXT,
    change_color,
    format_balance,
    format_change,
    format_tracking_age,
    status_text,
)


def test_format_change() -> None:
    assert format_change(1234.5, " USDT") == "+1,234.50 USDT"
    assert format_change(-0.456) == "-0.46"
    assert format_change(0.0) == "0.00"
    assert format_change(None, " USDT") == UNAVAILABLE_TEXT


def test_change_color() -> None:
    assert change_color(1.0) == COLORS["up"]
    assert change_color(-1.0) == COLORS["down"]
    assert change_color(0.0) == COLORS["flat"]
    assert change_color(None) == COLORS["text_secondary"]


def test_format_balance() -> None:
    assert format_balance(1234567.891) == ("1,234,567", "89")
    assert format_balance(None) == ("--", "--")


def test_format_tracking_age() -> None:
    assert format_tracking_age(45) == "45 minutes"
    assert format_tracking_age(125) == "2h 5m"
    assert format_tracking_age(60 * 24 * 3 + 60) == "3d 1h"


def test_status_text() -> None:
    assert status_text(MonitorStatus(state=MonitorState.LIVE))[0] == "LIVE"
    assert status_text(MonitorStatus(state=MonitorState.UPDATING))[0] == "UPDATING..."
    label, color = status_text(MonitorStatus(state=MonitorState.ERROR, last_error="timeout"))
    assert label == "STALE: timeout"
    assert color == COLORS["down"]
