"""Small structured logging helper.

The service logs JSON strings so output can be consumed by any log collector
without introducing new dependencies.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from src.core.request_context import get_request_id


def configure_logging(level: str = "INFO") -> None:
    """Route application loggers to stderr as bare JSON lines."""
    logging.basicConfig(format="%(message)s")
    logging.getLogger("src").setLevel(level.upper())


def log_json(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """Emit a single JSON log line with the current request correlation ID."""

    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": logging.getLevelName(level),
        "logger": logger.name,
        "event": event,
    }
    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id

    payload.update(fields)
    logger.log(level, json.dumps(payload, default=str))
