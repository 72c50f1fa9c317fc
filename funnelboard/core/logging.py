"""FUNNELBOARD — Structured JSON Logging.

One JSON object per line. Context about the definition being processed
(workspace, funnel, metric) travels in ``extra`` and becomes top-level
keys, so a failing custom metric can be traced to its owner.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping, Tuple

from funnelboard.config import settings

EXTRA_FIELDS = (
    "workspace_id",
    "funnel_id",
    "metric_id",
    "error_type",
    "pattern",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """Produces structured JSON log lines for production observability."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        return json.dumps(log_entry, default=str)


class WorkspaceLogger(logging.LoggerAdapter):
    """Adds workspace_id to every record; per-call extras still win."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> logging.Logger:
    """Return a named logger with structured JSON handler."""
    logger = logging.getLogger(f"funnelboard.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger


def for_workspace(logger: logging.Logger, workspace_id: str) -> WorkspaceLogger:
    """Bind a workspace to a logger for the duration of one operation."""
    return WorkspaceLogger(logger, {"workspace_id": workspace_id})
