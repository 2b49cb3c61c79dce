from __future__ import annotations

from typing import Optional

from ..config import AppConfig
from ..core.monitor import FlowMonitor
from .dashboard import build_dash_app


def serve(
    config: AppConfig,
    monitor: FlowMonitor,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    app = build_dash_app(config, monitor)
    app.run(
        host=host or config.env.DASH_HOST,
        port=config.env.DASH_PORT if port is None else port,
        debug=False,
    )
