"""
polycache - Logging Setup

Structured JSON logging for applications embedding polycache.

The library itself only calls logging.getLogger(__name__); handlers are
installed by the application through configure_logging().
"""

import json
import logging
from datetime import UTC, datetime

from .config.schemas import LogLevel

# LogRecord attributes that are not user supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    }
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add any extra fields passed via extra={...}
        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: LogLevel | str = LogLevel.INFO, logger_name: str = "polycache") -> logging.Logger:
    """
    Install a JSON stream handler on the polycache logger.

    Calling it again replaces the previously installed handlers.

    Args:
        level: Log level name
        logger_name: Logger to configure (default: the package logger)

    Returns:
        The configured logger
    """
    level_name = level.value if isinstance(level, LogLevel) else str(level).upper()

    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(level_name)

    return logger
