from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional


# LogRecord attributes that are not caller context
_RECORD_FIELDS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

TEXT_FORMAT = "%(levelname)s %(name)s: %(message)s"


def utc_timestamp(created: float) -> str:
    """ISO-8601 UTC with millisecond precision, matching sample timestamps."""
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat(timespec="milliseconds")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "time": utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_FIELDS and key not in payload:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_lines: bool = True, stream: Optional[IO[str]] = None) -> None:
    """Route the root logger to one handler.

    ``run`` and ``serve`` log JSON lines to stdout. ``status`` passes
    ``json_lines=False`` and ``stream=sys.stderr`` so its stdout holds only the
    metrics document.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter() if json_lines else logging.Formatter(TEXT_FORMAT))
    root.handlers.clear()
    root.addHandler(handler)

    # Dashboard request logs and RPC connection chatter
    for name in ("werkzeug", "dash", "urllib3"):
        noisy = logging.getLogger(name)
        noisy.handlers.clear()
        noisy.propagate = False
        noisy.setLevel(logging.CRITICAL)
