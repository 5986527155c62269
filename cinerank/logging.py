"""Structured logging configuration."""

import logging
import sys
from datetime import datetime, timezone

# Extra attributes rendered as key=value pairs after the message
CONTEXT_FIELDS = ("user_id", "media_kind", "session_round")

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


class StructuredFormatter(logging.Formatter):
    """Pipe-separated log lines with optional request context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
        level = record.levelname.ljust(8)

        parts = [timestamp, level, record.name, record.getMessage()]

        context = [
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        ]
        if context:
            parts.append(" ".join(context))

        log_line = " | ".join(parts)

        if record.exc_info:
            log_line += "\n" + self.formatException(record.exc_info)

        return log_line


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the service.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
