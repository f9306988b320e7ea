"""JSON logging configuration and per-request context helpers.

Every record is written to stdout as one JSON object so a log aggregator can
index it. Request-scoped values (correlation id, route, status, time spent
in the database) live in context variables and are merged into each record
by :class:`JSONFormatter`. Anything passed through ``extra=`` that is not a
well-known field ends up under ``extra_context`` with sensitive keys masked.
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)
_request_context_ctx: contextvars.ContextVar[Optional[Dict[str, Any]]] = (
    contextvars.ContextVar("request_context", default=None)
)

_REDACTED = "[REDACTED]"
_SENSITIVE_FIELDS = frozenset(
    field.strip().lower()
    for field in os.environ.get("SENSITIVE_FIELDS", "password,token,email,phone").split(",")
    if field.strip()
)

# Attributes copied from the record onto the top level of the payload.
_PROMOTED_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "client_ip",
    "user_agent",
    "route",
    "db_time_ms",
    "table",
    "operation",
    "student_id",
    "error_type",
    "error",
)

_BASE_FIELDS = ("ts", "level", "logger", "msg", "request_id") + _PROMOTED_FIELDS + (
    "stack",
    "extra_context",
)


def get_request_id() -> Optional[str]:
    """Return the correlation ID of the current request, if any."""

    return _request_id_ctx.get()


def set_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)
    merge_request_context(request_id=request_id)


def clear_request_id() -> None:
    _request_id_ctx.set(None)


def get_request_context() -> Dict[str, Any]:
    return _request_context_ctx.get() or {}


def merge_request_context(**kwargs: Any) -> None:
    """Merge non-``None`` key/value pairs into the current request context."""

    ctx = dict(get_request_context())
    ctx.update({key: value for key, value in kwargs.items() if value is not None})
    _request_context_ctx.set(ctx)


def clear_request_context() -> None:
    _request_context_ctx.set({})


def sensitive_fields() -> Iterable[str]:
    return _SENSITIVE_FIELDS


def redact_sensitive_data(data: Any, fields: Optional[Iterable[str]] = None) -> Any:
    """Mask sensitive values inside nested mappings and sequences.

    Keys are compared case-insensitively against ``fields`` (the configured
    ``SENSITIVE_FIELDS`` by default). Scalars are returned unchanged.
    """

    fields_set = {field.lower() for field in (fields or sensitive_fields())}

    if isinstance(data, Mapping):
        return {
            key: _REDACTED if str(key).lower() in fields_set
            else redact_sensitive_data(value, fields_set)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple, set)):
        return [redact_sensitive_data(item, fields_set) for item in data]
    return data


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    _RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
        "message",
        "asctime",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": get_request_id(),
        }

        for key, value in get_request_context().items():
            if payload.get(key) is None:
                payload[key] = value

        for field in _PROMOTED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["error_type"] = record.exc_info[0].__name__
            payload["error"] = str(record.exc_info[1])
            payload["stack"] = self.formatException(record.exc_info)
        elif record.stack_info:
            payload["stack"] = record.stack_info

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED and key not in payload and not key.startswith("_")
        }
        if extra:
            payload["extra_context"] = redact_sensitive_data(extra)

        for field in _BASE_FIELDS:
            payload.setdefault(field, None)

        return json.dumps(payload, default=_json_default, separators=(",", ":"))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


_configured = False


def configure_logging() -> None:
    """Install the JSON handler on the root logger (idempotent)."""

    global _configured
    if _configured:
        return

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    logging.captureWarnings(True)

    # Request/response lines are emitted by our own middleware.
    for name in ("werkzeug", "gunicorn.access", "sqlalchemy.engine"):
        noisy = logging.getLogger(name)
        noisy.handlers = []
        noisy.propagate = True
        noisy.setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


class DBTimer:
    """Accumulate time spent in the persistence layer for the current request."""

    def __enter__(self) -> "DBTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        elapsed = (time.perf_counter() - self._start) * 1000
        previous = get_request_context().get("db_time_ms", 0.0)
        merge_request_context(db_time_ms=round(previous + elapsed, 2))


__all__ = [
    "DBTimer",
    "JSONFormatter",
    "clear_request_context",
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_context",
    "get_request_id",
    "merge_request_context",
    "redact_sensitive_data",
    "sensitive_fields",
    "set_request_id",
]
