"""Structured JSON logging for the engine and the CLI.

Every ``extra={...}`` key passed to a log call is emitted as a top-level JSON
field, so engine modules can attach leg ids, symbols or solver methods without
registering them here.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LEVEL_ENV = "OSW_LOG_LEVEL"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message and extras."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ComponentFilter(logging.Filter):
    """Stamp a default ``component`` (and optional ``session``) onto records."""

    def __init__(self, component: Optional[str] = None, session: Optional[str] = None) -> None:
        super().__init__()
        self.component = component
        self.session = session

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if self.component and not hasattr(record, "component"):
            record.component = self.component
        if self.session and not hasattr(record, "session"):
            record.session = self.session
        return True


def _resolve_level(level: int | str | None) -> int:
    raw = level if level is not None else os.environ.get(LEVEL_ENV, "INFO")
    if isinstance(raw, int):
        return raw
    resolved = logging.getLevelName(str(raw).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    component: Optional[str] = None,
    session: Optional[str] = None,
    level: int | str | None = None,
) -> None:
    """Route the root logger to stderr as JSON lines.

    Tables and CSV go to stdout, so logs never interleave with command
    output. The level defaults to ``$OSW_LOG_LEVEL`` (INFO when unset).
    """

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(ComponentFilter(component, session))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_resolve_level(level))
    root.addHandler(handler)


def get_logger(name: str, component: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if component and not any(
        isinstance(f, ComponentFilter) and f.component == component for f in logger.filters
    ):
        logger.addFilter(ComponentFilter(component))
    return logger


__all__ = ["ComponentFilter", "JSONFormatter", "configure_logging", "get_logger"]
