"""Loguru setup emitting one JSON object per log line.

Every record carries ``trace_id`` and the promoted ``ticker``, ``provider``
and ``error_code`` fields. Anything else bound on the logger or set through
:func:`log_context` is reported under ``context``.
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Iterator
from uuid import uuid4

from loguru import logger

from histvault.core.logging.config import LogConfig

if TYPE_CHECKING:
    from loguru import Logger, Record

PROMOTED_FIELDS = ("ticker", "provider", "error_code")

_TRACE_ID: ContextVar[str | None] = ContextVar("histvault_trace_id", default=None)
_CONTEXT: ContextVar[dict[str, Any]] = ContextVar("histvault_log_context", default={})

# extra key holding the rendered line
_RENDERED = "histvault_json"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _render(record: Record) -> str:
    extra = record["extra"]
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "trace_id": extra.get("trace_id"),
    }
    for key in PROMOTED_FIELDS:
        payload[key] = extra.get(key)

    hidden = {"trace_id", _RENDERED, *PROMOTED_FIELDS}
    context = {key: value for key, value in extra.items() if key not in hidden}
    if context:
        payload["context"] = context

    exception = record["exception"]
    if exception is not None and exception.type is not None:
        payload["exception"] = f"{exception.type.__name__}: {exception.value}"
    return json.dumps(payload, default=_json_default)


def _patch_record(record: Record) -> None:
    extra = record["extra"]
    trace_id = extra.get("trace_id") or _TRACE_ID.get()
    if trace_id is None:
        trace_id = uuid4().hex
        _TRACE_ID.set(trace_id)
    extra["trace_id"] = trace_id

    # values bound on the logger win over the surrounding context
    for key, value in _CONTEXT.get().items():
        if extra.get(key) is None:
            extra[key] = value
    extra[_RENDERED] = _render(record)


def _json_line(record: Record) -> str:
    return "{extra[" + _RENDERED + "]}\n"


def configure_logging(level: str = "INFO", **options: Any) -> None:
    """Replace every loguru handler with JSON line sinks.

    ``options`` are :class:`LogConfig` fields. Only the CLI calls this; library
    code logs through :func:`get_logger` and leaves sink selection to the caller.
    """

    config = LogConfig(level=level, **options)
    common: dict[str, Any] = {"level": config.level.upper(), "format": _json_line, "colorize": False}

    handlers: list[dict[str, Any]] = []
    if config.console_output:
        handlers.append({"sink": config.console_stream or sys.stderr, **common})
    if config.file_output and config.file_path:
        handlers.append({"sink": config.file_path, "encoding": "utf-8", **common})

    logger.configure(handlers=handlers, patcher=_patch_record, extra=dict(config.extra))


def get_logger(name: str | None = None) -> Logger:
    """Return the loguru logger, bound to ``name`` when given."""

    if name:
        return logger.bind(logger_name=name)
    return logger


@contextmanager
def log_context(*, trace_id: str | None = None, **extra: Any) -> Iterator[str]:
    """Attach a trace id and extra fields to every record logged inside the block."""

    context_token = _CONTEXT.set({**_CONTEXT.get(), **extra})
    active_trace = trace_id or uuid4().hex
    trace_token = _TRACE_ID.set(active_trace)
    try:
        yield active_trace
    finally:
        _TRACE_ID.reset(trace_token)
        _CONTEXT.reset(context_token)


__all__ = ["PROMOTED_FIELDS", "configure_logging", "get_logger", "log_context"]
