"""Logging setup.

Two formats are supported:
  - ``plain``  ``2026-01-01 12:00:00 [INFO] prompt_demand.services...: message``
  - ``json``   one JSON object per line with structured context
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "prompt_demand"

_configured = False


class JsonFormatter(logging.Formatter):
    """Render records as JSON lines.

    Structured fields are passed as ``extra={"context": {...}}``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            payload["error"] = {
                "class": exc_type.__name__,
                "message": str(exc),
                "backtrace": traceback.format_tb(tb)[:5],
            }
        return json.dumps(payload, default=str)


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the package logger.

    Safe to call more than once; only the first call installs a handler.
    """
    global _configured
    logger = logging.getLogger(ROOT_LOGGER)
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if _configured:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    if (fmt or os.getenv("LOG_FORMAT", "plain")).lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    _configured = True
    return logger
