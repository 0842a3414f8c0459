"""Structured JSON logging for the fetch layer.

Every entry carries a :class:`LogRecord` payload. Records are queued and written
by a background listener so that logging never blocks a fetch.
"""

import dataclasses
import enum
import json
import logging
import os
import queue
import sys
import traceback
from datetime import datetime, timezone
from logging import Handler
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, List, Optional, Tuple

from .config import Settings

REDACTED = "***REDACTED***"

# Lower-cased keys whose values never reach a log sink
_REDACT_KEYS: set[str] = set()

_logger: Optional[logging.Logger] = None
_log_listener: Optional[QueueListener] = None


def json_dumps_compact(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def is_json_serializable(obj: Any) -> bool:
    try:
        json.dumps(obj)
    except (TypeError, ValueError):
        return False
    return True


def _redact_mapping(mapping: Dict[Any, Any]) -> Dict[Any, Any]:
    cleaned: Dict[Any, Any] = {}
    for key, value in mapping.items():
        if isinstance(key, str) and key.lower() in _REDACT_KEYS:
            cleaned[key] = REDACTED
            continue
        safe = _sanitize_for_json(value)
        if safe is not None:
            cleaned[key] = safe
    return cleaned


def _sanitize_for_json(obj: Any) -> Any:
    """
    Convert ``obj`` into something ``json.dumps`` accepts.

    Mappings lose their ``None`` values and have sensitive keys (tokens,
    passwords) masked; dataclasses become mappings first. Anything else that
    cannot be serialized is replaced by its ``repr``.
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, bytes):
        return obj.decode("utf-8", "replace")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _redact_mapping(dataclasses.asdict(obj))
    if isinstance(obj, dict):
        return _redact_mapping(obj)
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_sanitize_for_json(item) for item in obj if item is not None]
    if isinstance(obj, enum.Enum):
        return _sanitize_for_json(obj.value)
    return obj if is_json_serializable(obj) else repr(obj)


class LogEvent(enum.Enum):
    """Event tags used in ``LogRecord.event``."""

    FETCH_START = "fetch_start"
    FETCH_SUCCESS = "fetch_success"
    FETCH_FAILURE = "fetch_failure"
    FETCH_RETRY = "fetch_retry"
    FETCH_SUPERSEDED = "fetch_superseded"
    CACHE_EVENT = "cache_event"
    AUTH_EVENT = "auth_event"
    STORAGE_EVENT = "storage_event"
    DASHBOARD_PHASE = "dashboard_phase"


@dataclasses.dataclass
class LogError:
    """Exception details attached to a log entry.

    Attributes:
        name: Exception class name.
        message: ``str()`` of the exception.
        stack_trace: Formatted traceback, only filled when a file sink is active.
        args: JSON-safe copy of ``Exception.args``.
    """

    name: str
    message: str
    stack_trace: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None

    @classmethod
    def from_exception(cls, exc: BaseException, with_stack: bool) -> "LogError":
        safe_args = _sanitize_for_json(exc.args)
        return cls(
            name=type(exc).__name__,
            message=str(exc),
            stack_trace=(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
                if with_stack
                else None
            ),
            args=tuple(safe_args) if isinstance(safe_args, list) else (safe_args,),
        )


@dataclasses.dataclass
class LogRecord:
    """Payload of every structured log entry.

    Attributes:
        event: A :class:`LogEvent` value.
        message: One-line summary.
        endpoint: Endpoint key the entry is about, if any.
        data: Extra context; sanitized before output.
        error: Exception details, filled by the ``warning``/``error`` helpers.
    """

    event: str
    message: str
    endpoint: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[LogError] = None


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, timezone.utc).isoformat()


class JSONFormatter(logging.Formatter):
    """One compact JSON object per line."""

    def _payload(self, record: logging.LogRecord) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        structured = getattr(record, "log_record", None)
        if isinstance(structured, LogRecord):
            payload["detail"] = structured
            return payload

        # Third-party loggers (httpx) only carry a plain message
        payload["message"] = record.getMessage()
        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = LogError.from_exception(record.exc_info[1], True)
        return payload

    def format(self, record: logging.LogRecord) -> str:
        return json_dumps_compact(_sanitize_for_json(self._payload(record)))


class ConsoleJSONFormatter(JSONFormatter):
    """Indented JSON without stack traces, for reading in a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        payload = _sanitize_for_json(self._payload(record))
        for holder in (payload.get("detail"), payload):
            if isinstance(holder, dict) and isinstance(holder.get("error"), dict):
                holder["error"].pop("stack_trace", None)
        return json.dumps(payload, ensure_ascii=False, indent=2)


def _build_handlers(settings: Settings) -> List[Handler]:
    console = logging.StreamHandler(stream=sys.stderr)
    console.setFormatter(
        ConsoleJSONFormatter() if settings.log_pretty_console else JSONFormatter()
    )
    handlers: List[Handler] = [console]

    if not settings.log_file_path:
        return handlers
    try:
        directory = os.path.dirname(settings.log_file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(
            settings.log_file_path, mode="a", encoding="utf-8"
        )
    except OSError as e:
        logging.getLogger(settings.app_name).warning(
            "File logging disabled, cannot open %s: %s", settings.log_file_path, e
        )
        return handlers
    file_handler.setFormatter(JSONFormatter())
    handlers.append(file_handler)
    return handlers


def init_logging(settings: Settings) -> logging.Logger:
    """
    Route the root, application and httpx loggers through one queue.

    Calling it again replaces the previous configuration.

    Returns:
        The application logger
    """
    global _logger
    global _log_listener
    global _REDACT_KEYS
    shutdown_logging()

    log_queue: queue.Queue = queue.Queue(-1)
    _log_listener = QueueListener(log_queue, *_build_handlers(settings))
    _log_listener.start()

    queue_handler = QueueHandler(log_queue)
    levels = {
        "": logging.WARNING,
        "httpx": logging.WARNING,
        settings.app_name: settings.log_level.upper(),
    }
    for name, level in levels.items():
        configured = logging.getLogger(name)
        configured.handlers = [queue_handler]
        configured.setLevel(level)
        configured.propagate = name == ""

    _REDACT_KEYS = {field.lower() for field in settings.redact_log_fields}
    _logger = logging.getLogger(settings.app_name)
    return _logger


def shutdown_logging() -> None:
    """Stop the queue listener after it drained pending entries."""
    global _log_listener
    if _log_listener is None:
        return
    _log_listener.stop()
    _log_listener = None


def _file_sink_active() -> bool:
    if _log_listener is None:
        return False
    return any(isinstance(h, logging.FileHandler) for h in _log_listener.handlers)


def _log(level: int, record: LogRecord, exc: Optional[BaseException] = None) -> None:
    if exc is not None:
        record.error = LogError.from_exception(exc, with_stack=_file_sink_active())
        if not record.message:
            record.message = str(exc) or type(exc).__name__
    if _logger is not None:
        _logger.log(level=level, msg=record.message, extra={"log_record": record})


def debug(record: LogRecord) -> None:
    _log(logging.DEBUG, record)


def info(record: LogRecord) -> None:
    _log(logging.INFO, record)


def warning(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    _log(logging.WARNING, record, exc=exc)


def error(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    _log(logging.ERROR, record, exc=exc)
