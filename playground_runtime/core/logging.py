from __future__ import annotations

import contextvars
import json
import logging
import os
import queue
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator

DEFAULT_LOG_DIR = Path.home() / ".playgrounds" / "logs"
LOG_FILE_NAME = "playgrounds.log"
RECENT_CAPACITY = 500

# Everything a bare LogRecord carries; anything else on a record came from ``extra=`` or the context.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar("playgrounds_log_context", default={})
_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
_listener: QueueListener | None = None
_log_dir: Path | None = None


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    return str(value)


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Flatten a record into the dict written to every sink.

    The message is the dotted event name (``dev.start``, ``cleanup.failed``...),
    the remaining keys are whatever the caller passed through ``extra=`` plus the
    active request context.
    """
    stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
    fields: dict[str, Any] = {
        "ts": stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}Z",
        "level": record.levelname.lower(),
        "logger": record.name,
        "event": record.getMessage(),
    }
    for key, value in vars(record).items():
        if key in _STANDARD_ATTRS or key in fields or value is None:
            continue
        fields[key] = _jsonable(value)
    if record.exc_info:
        fields["exception"] = logging.Formatter().formatException(record.exc_info)
    return fields


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(record_fields(record), ensure_ascii=False)


class RecentLogRing(logging.Handler):
    """Keeps the last few hundred entries for ``/logs/recent``."""

    def __init__(self, capacity: int = RECENT_CAPACITY) -> None:
        super().__init__()
        self.entries: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.entries.append(record_fields(record))
        except Exception:
            self.handleError(record)

    def tail(self, limit: int, playground_id: str | None = None) -> list[dict[str, Any]]:
        if limit <= 0:
            return []
        entries = list(self.entries)
        if playground_id is not None:
            entries = [entry for entry in entries if entry.get("playground_id") == playground_id]
        return entries[-limit:]


RECENT_LOGS = RecentLogRing()


def _resolve_log_dir(explicit: str | Path | None) -> Path:
    raw = explicit or os.getenv("PLAYGROUNDS_LOG_DIR")
    return Path(raw).expanduser() if raw else DEFAULT_LOG_DIR


def configure_logging(level: int | str | None = None, log_dir: str | Path | None = None) -> logging.Logger:
    """Route all logging through one queue to console, a rotating file and the recent-log ring.

    Safe to call again; the previous listener is stopped and replaced.
    """
    global _listener, _log_dir
    target = _resolve_log_dir(log_dir)
    target.mkdir(parents=True, exist_ok=True)
    _log_dir = target

    formatter = JsonLineFormatter()
    sinks: list[logging.Handler] = [
        RotatingFileHandler(target / LOG_FILE_NAME, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"),
        RECENT_LOGS,
    ]
    if os.getenv("PLAYGROUNDS_LOG_CONSOLE", "1").strip().lower() not in {"0", "false", "no", "off"}:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setFormatter(formatter)

    # Context is read on the emitting thread, before the record crosses the queue.
    queue_handler = QueueHandler(_queue)
    queue_handler.addFilter(ContextFilter())
    root = logging.getLogger()
    root.handlers = [queue_handler]
    root.setLevel(level or os.getenv("PLAYGROUNDS_LOG_LEVEL", "INFO").upper())

    if _listener is not None:
        _listener.stop()
    _listener = QueueListener(_queue, *sinks, respect_handler_level=True)
    _listener.start()
    return logging.getLogger("playgrounds")


def push_log_context(**fields: Any) -> contextvars.Token:
    merged = {**_context.get(), **{key: value for key, value in fields.items() if value is not None}}
    return _context.set(merged)


def pop_log_context(token: contextvars.Token) -> None:
    _context.reset(token)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    token = push_log_context(**fields)
    try:
        yield
    finally:
        pop_log_context(token)


def get_recent_logs(limit: int = 200, playground_id: str | None = None) -> list[dict[str, Any]]:
    return RECENT_LOGS.tail(limit, playground_id=playground_id)


def shutdown_logging() -> None:
    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


def get_log_dir() -> Path:
    return _log_dir or DEFAULT_LOG_DIR
