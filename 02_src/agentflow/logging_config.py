"""Structured logging configuration for agentflow."""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Record attributes set through `extra=` that identify what a line is about
CONTEXT_FIELDS = ("workflow_id", "execution_id", "step_id", "agent_id", "tool_id")

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with execution ids lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console_format: str = "json",
) -> None:
    """
    Configure the root logger with a rotating JSON file and a console handler.

    Args:
        log_level: DEBUG..CRITICAL. Falls back to LOG_LEVEL, then INFO.
        log_file: Falls back to LOG_FILE, then 04_logs/agentflow.log.
        console_format: "json" or "text" for the console handler.
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_path = Path(log_file or os.getenv("LOG_FILE", str(DEFAULT_LOG_PATH)))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if console_format not in ("json", "text"):
        raise ValueError(f"Unknown console log format: {console_format}")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "agentflow.logging_config.JSONFormatter"},
                "text": {"format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s"},
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(log_path),
                    "maxBytes": 10 * 1024 * 1024,
                    "backupCount": 5,
                    "formatter": "json",
                    "encoding": "utf-8",
                },
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": console_format,
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
            "root": {"level": level, "handlers": ["file", "console"]},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__."""
    return logging.getLogger(name)
