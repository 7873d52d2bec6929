"""Logging configuration.

Provides JSON-formatted logging for the holder CLI and inbound endpoint.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in ("token", "transaction_id", "message_type"):
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    log_file: Optional[str] = None,
    log_level: Optional[str] = None,
):
    """Configure logging with JSON formatter.

    Args:
        log_file: Optional path to an append-mode log file. Defaults to
            HOLDER_LOG_FILE env var; no file handler when unset.
        log_level: Log level. Defaults to HOLDER_LOG_LEVEL env var or 'INFO'.
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(JsonFormatter())
    handlers: list[logging.Handler] = [console_handler]

    log_file = log_file or os.getenv("HOLDER_LOG_FILE")
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    log_level = (log_level or os.getenv("HOLDER_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers
