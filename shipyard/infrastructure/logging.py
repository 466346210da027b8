"""
Centralized Logging

Architectural Intent:
- Renders the log events emitted by the transfer use cases
- Human-readable output by default, structured JSON for log shippers
- Log level driven by CLI flags (--verbose, --debug)
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Optional, TextIO

# Structured fields attached through `extra=` that the JSON output carries.
STRUCTURED_FIELDS = ("host", "phase")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure logging for the shipyard application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, use JSON structured output. Otherwise human-readable.
        stream: Destination stream, stderr by default.
    """
    root = logging.getLogger("shipyard")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    elif level <= logging.DEBUG:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))

    root.addHandler(handler)
