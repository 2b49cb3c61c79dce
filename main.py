from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import typer

from flowmon.config import load_config
from flowmon.core.monitor import FlowMonitor, MetricsBundle
from flowmon.data.balance_source import Erc20BalanceSource
from flowmon.data.collector import BalanceCollector
from flowmon.utils.logging import setup_logging


app = typer.Typer(add_completion=False)
logger = logging.getLogger("flowmon")


def log_metrics(metrics: MetricsBundle) -> None:
    logger.info("metrics", extra={"metrics": metrics.as_dict()})


def exit_on_sigterm() -> None:
    """Turn SIGTERM into SystemExit so `finally` blocks run the shutdown flush."""

    def handle_sigterm(signum, frame):  # noqa: ANN001
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, handle_sigterm)


def build_collector(config_path: Optional[Path], log_level: Optional[str]) -> BalanceCollector:
    cfg = load_config(config_path)
    setup_logging(log_level or cfg.env.LOG_LEVEL)
    monitor = FlowMonitor(cfg)
    monitor.start()
    source = Erc20BalanceSource.from_config(cfg)
    return BalanceCollector(monitor, source, on_metrics=log_metrics)


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, help="Path to config.yaml"),
    log_level: Optional[str] = typer.Option(None),
) -> None:
    """Sample the balance headless and log one metrics line per tick."""
    collector = build_collector(config, log_level)

    stop_event = threading.Event()

    def handle_signal(signum, frame):  # noqa: ANN001, D401
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    collector.start()
    typer.echo("Running. Press Ctrl+C to stop.")
    try:
        while not stop_event.is_set():
            stop_event.wait(0.5)
    finally:
        collector.stop()


@app.command()
def serve(
    config: Optional[Path] = typer.Option(None, help="Path to config.yaml"),
    host: Optional[str] = typer.Option(None),
    port: Optional[int] = typer.Option(None),
    log_level: Optional[str] = typer.Option(None),
) -> None:
    """Sample the balance and serve the dashboard."""
    from flowmon.web.server import serve as serve_web

    collector = build_collector(config, log_level)
    exit_on_sigterm()
    collector.start()
    try:
        serve_web(collector.monitor.config, collector.monitor, host=host, port=port)
    finally:
        collector.stop()


@app.command()
def status(config: Optional[Path] = typer.Option(None, help="Path to config.yaml")) -> None:
    """Print metrics computed from the stored history."""
    cfg = load_config(config)
    setup_logging("WARNING", json_lines=False, stream=sys.stderr)
    monitor = FlowMonitor(cfg)
    monitor.start()
    metrics = monitor.query()
    typer.echo(json.dumps(metrics.as_dict(), indent=2))


if __name__ == "__main__":
    app()
