from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import dash
import dash_bootstrap_components as dbc
import plotly.graph_objs as go
from dash import Dash, Input, Output, dcc, html

from ..config import AppConfig
from ..core.monitor import FlowMonitor, MetricsBundle
from .render import (
    COLORS,
    change_color,
    format_balance,
    format_change,
    format_timestamp,
    format_tracking_age,
    status_text,
)


CARD_STYLE = {
    "backgroundColor": COLORS["bg_medium"],
    "padding": "20px",
    "borderRadius": "15px",
    "marginBottom": "20px",
    "fontFamily": "'Courier New', monospace",
    "color": COLORS["text_primary"],
}


def change_rows(metrics: Optional[MetricsBundle], symbol: str) -> List[html.Div]:
    rows: List[html.Div] = []
    deltas = metrics.deltas if metrics is not None else {}
    for label, value in deltas.items():
        rows.append(
            html.Div([
                html.Strong(f"{label}: "),
                html.Span(format_change(value, f" {symbol}"), style={"color": change_color(value)}),
            ], style={"marginBottom": "8px"})
        )
    return rows


def stats_rows(metrics: Optional[MetricsBundle]) -> List[html.Div]:
    if metrics is None:
        return [html.P("No data yet", style={"color": COLORS["text_secondary"]})]
    rate = metrics.flow_rate
    return [
        html.Div([
            html.Strong("Flow Rate: "),
            html.Span(format_change(rate.value, " M/hr"), style={"color": change_color(rate.value)}),
            html.Span(f" ({rate.label})", style={"color": COLORS["text_secondary"]}),
        ], style={"marginBottom": "8px"}),
        html.Div([
            html.Strong("Data Points: "),
            html.Span(f"{metrics.record_count} records", style={"color": COLORS["cyan"]}),
        ], style={"marginBottom": "8px"}),
        html.Div([
            html.Strong("Tracking For: "),
            html.Span(format_tracking_age(metrics.tracking_minutes), style={"color": COLORS["yellow"]}),
        ]),
    ]


class DashboardApp:
    """Dash view over a running `FlowMonitor`.

    Callbacks only read `monitor.status.last_metrics`, the last bundle a
    successful tick produced, so a failing tick leaves the numbers as they
    were and flips the footer to a stale indicator.
    """

    def __init__(self, config: AppConfig, monitor: FlowMonitor, app: Dash | None = None) -> None:
        self.config = config
        self.monitor = monitor
        if app is None:
            self.app: Dash = dash.Dash(__name__, external_stylesheets=[dbc.themes.COSMO])
        else:
            self.app = app
        self.app.title = f"{config.runtime.token_symbol} Flow Monitor"
        self._layout()
        self._callbacks()

    def _layout(self) -> None:
        rt = self.config.runtime
        self.app.layout = html.Div([
            html.H2(
                f"{rt.token_symbol} FLOW MONITOR",
                style={"textAlign": "center", "color": COLORS["cyan"], "letterSpacing": "0.4em"},
            ),
            html.Div([
                html.Strong("Address: "), html.Span(rt.monitored_address),
                html.Span("  |  "),
                html.Strong("Token: "), html.Span(f"{rt.token_symbol} ({rt.token_address})"),
            ], style=CARD_STYLE),
            html.Div(id="balance", style={**CARD_STYLE, "textAlign": "center", "fontSize": "48px"}),
            dbc.Row([
                dbc.Col(html.Div([html.H5("Flow Metrics"), html.Div(id="changes")], style=CARD_STYLE), md=6),
                dbc.Col(html.Div([html.H5("Statistics"), html.Div(id="stats")], style=CARD_STYLE), md=6),
            ]),
            dcc.Graph(id="history"),
            html.Div(id="footer", style={**CARD_STYLE, "fontSize": "13px"}),
            dcc.Interval(id="tick", interval=1000, n_intervals=0),
        ], style={
            "backgroundColor": COLORS["bg_dark"],
            "minHeight": "100vh",
            "padding": "20px",
            "fontFamily": "'Courier New', monospace",
        })

    def _callbacks(self) -> None:
        symbol = self.config.runtime.token_symbol

        @self.app.callback(Output("balance", "children"), Input("tick", "n_intervals"))
        def balance(_: int):
            metrics = self.monitor.status.last_metrics
            whole, frac = format_balance(metrics.current_value if metrics else None)
            return [
                html.Span(whole, style={"color": COLORS["yellow"], "fontWeight": "bold"}),
                html.Span(f".{frac}", style={"color": COLORS["text_secondary"]}),
                html.Div(symbol, style={"fontSize": "18px", "letterSpacing": "0.4em"}),
            ]

        @self.app.callback(Output("changes", "children"), Input("tick", "n_intervals"))
        def changes(_: int):
            return change_rows(self.monitor.status.last_metrics, symbol)

        @self.app.callback(Output("stats", "children"), Input("tick", "n_intervals"))
        def stats(_: int):
            return stats_rows(self.monitor.status.last_metrics)

        @self.app.callback(Output("footer", "children"), Input("tick", "n_intervals"))
        def footer(_: int):
            status = self.monitor.status
            label, color = status_text(status)
            interval_sec = self.config.runtime.sample_interval_ms // 1000
            return [
                html.Span(f"Last Update: {format_timestamp(status.last_update_ms)}  |  "),
                html.Span("Status: "), html.Span(label, style={"color": color}),
                html.Span(f"  |  Updates: every {interval_sec}s  |  Storage: {self.config.runtime.data_file}"),
            ]

        @self.app.callback(Output("history", "figure"), Input("tick", "n_intervals"))
        def history(_: int):
            samples = self.monitor.store.all()
            fig = go.Figure()
            if not samples:
                fig.add_annotation(
                    text="No data available",
                    xref="paper", yref="paper",
                    x=0.5, y=0.5, showarrow=False,
                    font=dict(color=COLORS["text_secondary"]),
                )
            else:
                # thin to ~500 points for rendering
                step = max(1, len(samples) // 500)
                shown = list(samples[::step])
                if shown[-1] is not samples[-1]:
                    shown.append(samples[-1])
                fig.add_trace(go.Scatter(
                    x=[datetime.fromtimestamp(s.timestamp / 1000, tz=timezone.utc) for s in shown],
                    y=[s.value for s in shown],
                    mode="lines",
                    line=dict(color=COLORS["cyan"]),
                    name=symbol,
                ))
            fig.update_layout(
                plot_bgcolor=COLORS["bg_medium"],
                paper_bgcolor=COLORS["bg_medium"],
                font=dict(color=COLORS["text_primary"]),
                margin=dict(l=50, r=50, t=30, b=40),
            )
            return fig


def build_dash_app(config: AppConfig, monitor: FlowMonitor) -> Dash:
    d = DashboardApp(config, monitor)
    return d.app
