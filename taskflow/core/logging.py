"""Logging setup for the task workflow engine.

Log records can carry correlation fields (``request_id``, ``run_id``,
``node_id``). Fields bound with :func:`logging_context` live in a context
variable, so they follow a request into FastAPI's threadpool and never leak
between concurrent runs.
"""

import json
import logging
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

_log_context: ContextVar[Dict[str, Any]] = ContextVar("taskflow_log_context", default={})

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s%(context_suffix)s"

# Third-party loggers that are too chatty at INFO.
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "urllib3": logging.WARNING,
    "asyncio": logging.WARNING,
}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, correlation fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "context", {}))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


class ContextFilter(logging.Filter):
    """Attach the bound context and per-call fields to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = dict(_log_context.get())
        context.update(getattr(record, "extra_fields", {}))
        record.context = context
        record.context_suffix = (
            " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"
            if context else ""
        )
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the root logger for the engine.

    Args:
        level: Root logging level name
        log_file: Optional path of a rotating log file
        log_format: Format string for plain-text output; ``%(context_suffix)s``
            renders the correlation fields
        structured: Emit JSON lines instead of plain text
        max_size: Size in bytes at which the log file rotates
        backup_count: Number of rotated files to keep

    Returns:
        The configured root logger
    """
    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(fmt=log_format or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count))

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    context_filter = ContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_logging_context(**kwargs):
    """Bind fields to every record logged from the current context."""
    _log_context.set({**_log_context.get(), **kwargs})


def clear_logging_context(*keys):
    """Unbind the given fields, or all of them when no keys are given."""
    if not keys:
        _log_context.set({})
        return
    _log_context.set({key: value for key, value in _log_context.get().items() if key not in keys})


@contextmanager
def logging_context(**kwargs) -> Iterator[None]:
    """Bind fields for the duration of a ``with`` block, restoring the previous ones after."""
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log ``message`` with fields that apply to this record only."""
    logger.log(level, message, extra={"extra_fields": context})
