"""
Mahoya Logging

Purpose
-------
Structured, async-safe logging for the gamification engine.

Every record carries the storefront request it belongs to: the signed-in
``user_id`` or the guest ``viewer``, the ``operation`` being performed and a
short ``correlation_id`` shared by everything logged inside one request.

Output
------
- Console: one JSON object per line in production (or with ``LOG_JSON``),
  colored human-readable text on a TTY otherwise.
- File: a JSON backup under ``LOGS_DIR``, rotated at UTC midnight with one
  day retained.
- Handlers run on a ``QueueListener`` thread; callers only pay for a
  ``put_nowait`` on a bounded queue. When the queue is full the record is
  dropped and counted.

Usage
-----
    setup_logging()                      # once, at process start
    log = get_logger(__name__)           # anywhere

    async with LogContext(user_id="u-1", operation="d20.roll"):
        log.info("Rolling", extra={"roll_result": 17})
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from mahoya.core.config.config import Config


CONTEXT_FIELDS = ("user_id", "viewer", "operation", "correlation_id")
QUEUE_MAX_SIZE = 10_000
BACKUP_FILENAME = "mahoya.json.log"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("mahoya_log_context", default={})

_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_listener: Optional[QueueListener] = None
_dropped = 0


def _log_level() -> int:
    name = Config.LOG_LEVEL if isinstance(Config.LOG_LEVEL, str) else "INFO"
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _wants_json() -> bool:
    return bool(Config.LOG_JSON) or Config.is_production()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Stamps the active log context onto each record; missing fields read ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for field in CONTEXT_FIELDS:
            setattr(record, field, context.get(field, "-"))
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{text}\033[0m" if color else text


# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Context fields go under ``ctx`` (omitted when unset), ``extra`` fields
    under ``data``, and tracebacks under ``exception``.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }

        ctx = {
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if getattr(record, field, "-") not in (None, "-")
        }
        if ctx:
            payload["ctx"] = ctx

        data = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if data:
            payload["data"] = data

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        global _dropped
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _dropped += 1


# ============================================================================
# Setup / Shutdown
# ============================================================================


def _build_handlers(file_output: bool) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if _wants_json():
        console.setFormatter(JSONFormatter())
    else:
        formatter_cls = ColoredFormatter if sys.stdout.isatty() else logging.Formatter
        console.setFormatter(formatter_cls(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    handlers: List[logging.Handler] = [console]

    if file_output:
        logs_dir = Path(Config.LOGS_DIR).resolve()
        logs_dir.mkdir(parents=True, exist_ok=True)
        backup = TimedRotatingFileHandler(
            filename=str(logs_dir / BACKUP_FILENAME),
            when="midnight",
            backupCount=1,
            encoding="utf-8",
            utc=True,
        )
        backup.setFormatter(JSONFormatter())
        handlers.append(backup)

    return handlers


def setup_logging(*, file_output: bool = True) -> None:
    """Install the queue-backed handlers on the root logger. No-op if already installed."""
    global _queue, _listener, _dropped

    if _listener is not None:
        return

    level = _log_level()
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    _queue = queue.Queue(QUEUE_MAX_SIZE)
    _listener = QueueListener(_queue, *_build_handlers(file_output), respect_handler_level=True)
    _listener.start()
    _dropped = 0

    # The filter sits on the queue handler so context is captured on the
    # calling task, not on the listener thread.
    queue_handler = _DroppingQueueHandler(_queue)
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    for noisy in ("asyncio", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    get_logger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "level": logging.getLevelName(level),
            "json": _wants_json(),
            "file_output": file_output,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and detach the handlers installed by ``setup_logging``."""
    global _queue, _listener

    if _listener is None:
        return

    _listener.stop()
    for handler in _listener.handlers:
        handler.close()
    _listener = None
    _queue = None

    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, _DroppingQueueHandler)]:
        root.removeHandler(handler)


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def dropped_record_count() -> int:
    """Records discarded because the queue was full since the last ``setup_logging``."""
    return _dropped


# ============================================================================
# Context
# ============================================================================


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


class LogContext:
    """
    Scope log context to a block; works with ``with`` and ``async with``.

    Fields not passed are inherited from the enclosing context, so a nested
    ``LogContext(operation=...)`` keeps the caller's ``correlation_id``. A
    fresh one is generated only at the outermost level.
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = {key: value for key, value in fields.items() if value is not None}
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        context = {**_log_context.get(), **self._fields}
        context.setdefault("correlation_id", new_correlation_id())
        if "user_id" in context:
            context.setdefault("viewer", context["user_id"])
        self._token = _log_context.set(context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge ``fields`` into the current context without scoping."""
    _log_context.set({**_log_context.get(), **{k: v for k, v in fields.items() if v is not None}})


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})
