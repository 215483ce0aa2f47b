"""Logging and telemetry configuration."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import Settings

logger = logging.getLogger("catalog_sync.telemetry")

_RESERVED = {"level", "logger", "timestamp"}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            payload.update({k: v for k, v in record.msg.items() if k not in _RESERVED})
        else:
            payload["message"] = record.getMessage()
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(settings: Settings) -> None:
    """Configure structured logging on the root logger."""
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if settings.log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


def log_timing(operation: str, duration_ms: float, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Log operation timing metrics."""
    logger.info({"event": "timing", "operation": operation, "duration_ms": round(duration_ms, 1), **(metadata or {})})


def log_sync_event(event_type: str, details: Dict[str, Any]) -> None:
    """Log sync-related events."""
    logging.getLogger("catalog_sync.sync").info({"event": event_type, **details})
