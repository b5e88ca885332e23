"""
Logging for the lodge chancellor backend.

Three loggers are configured, all under the "lodge." namespace:
- api: request handling and error responses
- services: reconciliation, alerts, session saves, ledger mirroring, toasts
- db: persistence collaborator failures

Chancellor actions run inside ``action_context(...)``. The fields it sets
(action title, event GUID, ...) are attached to every record logged while the
action runs, so the lines of one session save can be told apart from the
lines of a concurrent overview request.

Output:
- development (default): one console line per record, context appended as
  key=value pairs
- production (LODGE_ENV=production): one JSON object per record in a rotating
  file per logger under LODGE_LOG_DIR
"""

import json
import logging
import logging.handlers
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


LOGGER_NAMES = ("api", "services", "db")

_action_context: ContextVar[Dict[str, Any]] = ContextVar("lodge_action_context", default={})


@contextmanager
def action_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """
    Attach fields to every record logged until the block exits.

    Nested blocks see the outer fields too; inner values win on conflicts.

    Example:
        >>> with action_context(action="Saving session", event="evt_01hgw..."):
        ...     logger.info("Attendance replaced")
    """
    merged = {**_action_context.get(), **fields}
    token = _action_context.set(merged)
    try:
        yield merged
    finally:
        _action_context.reset(token)


def current_context() -> Dict[str, Any]:
    return dict(_action_context.get())


class ActionContextFilter(logging.Filter):
    """
    Copy the current action context onto each record as ``record.context``.

    Fields passed explicitly with ``extra={"extra_fields": {...}}`` are merged
    over the action context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = current_context()
        context.update(getattr(record, "extra_fields", None) or {})
        record.context = context
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record: time, level, logger, message, origin, context."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "origin": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(getattr(record, "context", None) or {})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Console line with the action context appended.

    Example:
        [2024-03-01 20:15:02] INFO lodge.services: Session saved (action='Saving session' event='evt_01hgw...')
    """

    def __init__(self):
        super().__init__(
            fmt="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value!r}" for key, value in context.items())
            line = f"{line} ({pairs})"
        return line


@dataclass
class LoggingOptions:
    level: int = logging.INFO
    production: bool = False
    log_dir: Path = Path("logs")
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_env(cls) -> "LoggingOptions":
        """Read LODGE_LOG_LEVEL, LODGE_ENV and LODGE_LOG_DIR."""
        level_name = os.environ.get("LODGE_LOG_LEVEL", "INFO").upper()
        return cls(
            level=getattr(logging, level_name, logging.INFO),
            production=os.environ.get("LODGE_ENV", "development").lower() == "production",
            log_dir=Path(os.environ.get("LODGE_LOG_DIR", "logs")),
        )


def _build_handler(name: str, options: LoggingOptions) -> logging.Handler:
    if options.production:
        options.log_dir.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            options.log_dir / f"{name}.log",
            maxBytes=options.max_bytes,
            backupCount=options.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ConsoleFormatter())

    handler.setLevel(options.level)
    handler.addFilter(ActionContextFilter())
    return handler


def configure_logging(options: Optional[LoggingOptions] = None) -> Dict[str, logging.Logger]:
    """
    (Re)configure the lodge loggers.

    Existing handlers are replaced, so calling this twice does not duplicate
    output. Records do not propagate to the root logger.
    """
    options = options or LoggingOptions.from_env()
    loggers = {}

    for name in LOGGER_NAMES:
        logger = logging.getLogger(f"lodge.{name}")
        logger.setLevel(options.level)
        logger.propagate = False
        logger.handlers.clear()
        logger.addHandler(_build_handler(name, options))
        loggers[name] = logger

    return loggers


_loggers: Optional[Dict[str, logging.Logger]] = None


def get_logger(name: str) -> logging.Logger:
    """
    Configured logger for one of LOGGER_NAMES.

    Raises:
        ValueError: If the name is not one of the lodge loggers
    """
    global _loggers

    if name not in LOGGER_NAMES:
        raise ValueError(f"Unknown logger name: {name}. Valid names: {', '.join(LOGGER_NAMES)}")

    if _loggers is None:
        _loggers = configure_logging()
    return _loggers[name]


def init_logging(options: Optional[LoggingOptions] = None) -> Dict[str, logging.Logger]:
    """Configure logging at application startup."""
    global _loggers
    _loggers = configure_logging(options)
    return _loggers
