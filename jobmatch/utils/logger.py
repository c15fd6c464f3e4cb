"""
Structured logging with request context.

Every service logs through ``ContextualLogger`` using an event name plus
keyword fields::

    logger.info("analysis_started", generation=3, job_title="Backend Engineer")

Request and user ids are carried in context variables set by the monitoring
middleware, so pipeline code never has to pass them around.
"""
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jobmatch.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _context_fields() -> Dict[str, str]:
    fields = {}
    request_id = request_id_var.get()
    if request_id:
        fields["request_id"] = request_id
    user_id = user_id_var.get()
    if user_id:
        fields["user_id"] = user_id
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        log_data.update(_context_fields())
        log_data.update(getattr(record, 'extra_fields', {}))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human readable lines for local development: ``<prefix> event key=value ...``"""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {**_context_fields(), **getattr(record, 'extra_fields', {})}
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


class ContextualLogger:
    """Wraps a stdlib logger so calls take an event name and keyword fields"""

    def __init__(self, logger: logging.Logger, bound: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.bound = bound or {}

    def bind(self, **fields) -> "ContextualLogger":
        """Return a logger that adds ``fields`` to every event"""
        return ContextualLogger(self.logger, {**self.bound, **fields})

    def _log(self, level: int, event: str, exc_info: bool = False, **fields):
        if not self.logger.isEnabledFor(level):
            return

        record = self.logger.makeRecord(
            name=self.logger.name,
            level=level,
            fn="",
            lno=0,
            msg=event,
            args=(),
            exc_info=sys.exc_info() if exc_info else None
        )
        record.extra_fields = {**self.bound, **fields}
        self.logger.handle(record)

    def debug(self, event: str, **fields):
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields):
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields):
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, exc_info: bool = False, **fields):
        self._log(logging.ERROR, event, exc_info=exc_info, **fields)


def setup_logging():
    """Install a single stdout handler on the root logger using LOG_LEVEL and LOG_FORMAT"""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter('%(asctime)s %(levelname)-7s %(name)s %(message)s'))
    root_logger.addHandler(handler)

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> ContextualLogger:
    return ContextualLogger(logging.getLogger(name))


def set_request_context(request_id: str, user_id: Optional[str] = None):
    request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)


def clear_request_context():
    request_id_var.set(None)
    user_id_var.set(None)
