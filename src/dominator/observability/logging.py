"""Structured logging for dominance decisions.

Provides:
- JSON-formatted logs for log aggregation systems (ELK, Loki, etc.)
- Node identity propagation through a context variable
- Human-readable console output for development

Usage:
    from dominator.observability.logging import setup_logging

    setup_logging()  # log_json and log_level from DOMINATOR_* settings

    with LogContext(server_id=dominator.server_id):
        logger.info("Draining queue")  # Includes server_id
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from dominator.config import Settings, settings

server_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("server_id", default="")

# Standard LogRecord attributes, never copied as extra fields
_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
}


class JsonFormatter(logging.Formatter):
    """JSON log formatter with node identity.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "INFO",
        "logger": "dominator.dominator",
        "message": "Dominance claimed",
        "module": "dominator",
        "function": "claim",
        "line": 42,
        "server_id": "worker-1-3f2a9c1d"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        server_id = server_id_var.get()
        if server_id:
            log_data["server_id"] = server_id

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for development.

    Output format:
    2026-01-10 12:34:56 | INFO | dominator.dominator | Dominance claimed | node=worker-1
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        message = record.getMessage()
        server_id = server_id_var.get()
        context = f" | node={server_id}" if server_id else ""

        result = f"{timestamp} | {level:8} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure process-wide logging.

    Args:
        json_format: Use JSON format (recommended for production)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
    root_logger.addHandler(handler)

    # Reduce noise from drivers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)


def setup_logging(config: Settings | None = None) -> None:
    """Configure logging from the ``log_json`` and ``log_level`` settings."""
    config = config or settings
    configure_logging(json_format=config.log_json, level=config.log_level)


class LogContext:
    """Context manager binding the node identity to log records.

    Usage:
        with LogContext(server_id="worker-1"):
            logger.info("Polling")  # Includes server_id
    """

    def __init__(self, server_id: str) -> None:
        self.server_id = server_id
        self._token: contextvars.Token[str] | None = None

    def __enter__(self) -> "LogContext":
        self._token = server_id_var.set(self.server_id)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            server_id_var.reset(self._token)
            self._token = None
