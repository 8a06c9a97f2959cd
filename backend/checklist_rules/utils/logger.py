"""Structured JSON logging for the rule engine

Every line is one JSON object. During a workflow run the correlation id is
the execution id, so all lines of that run (engine, executors, store) can be
joined on it.
"""
import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Iterator, Optional

from ..config.settings import settings


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5
_QUIET_LOGGERS = ("httpx", "httpcore", "pymongo", "motor", "apscheduler")


class JsonFormatter(logging.Formatter):
    """Render records as JSON, keeping only the engine's known `extra` keys"""

    EXTRA_FIELDS = (
        "workflow_id", "execution_id", "workspace_id", "event_type", "action_type",
        "attempt", "template_id", "step_id", "target_id", "status", "duration_ms"
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        entry.update({
            name: getattr(record, name)
            for name in self.EXTRA_FIELDS if hasattr(record, name)
        })

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Payload values (datetimes, enums) fall back to str()
        return json.dumps(entry, default=str)


def _rotating_handler(filename: str, level: int = logging.NOTSET) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        os.path.join(settings.logs_path, filename),
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_LOG_BACKUPS,
        encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def setup_logging() -> None:
    """
    Configure the root logger

    Always logs to stdout. With `log_to_file` enabled, also writes
    engine.log (everything) and error.log (ERROR and above) under
    `logs_path`, rotated at 10MB.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_to_file:
        os.makedirs(settings.logs_path, exist_ok=True)
        handlers.append(_rotating_handler("engine.log"))
        handlers.append(_rotating_handler("error.log", logging.ERROR))

    formatter = JsonFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Set the correlation id for the duration of the block, then restore it"""
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)
