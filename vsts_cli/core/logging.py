"""Logging helpers with redaction of credentials."""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

# Sensitive key patterns to redact
SENSITIVE_PATTERNS = [
    r"token",
    r"secret",
    r"password",
    r"authorization",
    r"^pat$",
]

REDACTED = "***REDACTED***"


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def redact_sensitive(data: Any) -> Any:
    """
    Redact credentials from data.

    Args:
        data: Data to redact (dict, list, or string)

    Returns:
        Redacted copy of the data

    """
    if isinstance(data, dict):
        return {k: redact_value(k, v) for k, v in data.items()}
    if isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    if isinstance(data, str):
        return re.sub(r"(Basic|Bearer)\s+\S+", rf"\1 {REDACTED}", data)
    return data


def redact_value(key: str, value: Any) -> Any:
    """Redact value if key matches a sensitive pattern."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, key_lower):
            return REDACTED

    if isinstance(value, (dict, list, str)):
        return redact_sensitive(value)

    return value


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (usually for ``__name__``)."""
    return logging.getLogger(name)


def setup_logging(level: str = "INFO", structured: bool = False) -> None:
    """
    Set up application logging.

    Args:
        level: Log level name
        structured: Use structured JSON logging

    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers = []

    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root_logger.addHandler(handler)
