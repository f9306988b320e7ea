"""Request IDs and structured request/response logging for the Flask application."""

from __future__ import annotations

import json
import os
import random
import re
import time
import uuid
from typing import Any, Dict, Optional

from flask import Flask, Response, g, request

from app_logging import (
    clear_request_context,
    clear_request_id,
    get_logger,
    merge_request_context,
    redact_sensitive_data,
    set_request_id,
)

HEADER_NAME = "X-Request-ID"

_DEFAULT_SAMPLE_RATE = 1.0
_DEFAULT_MAX_BYTES = 2048
_UNLOGGED_PATHS = {"/health", "/favicon.ico"}
# Caller-supplied IDs end up in logs and response headers.
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._-]{1,64}")

_request_logger = get_logger("hafalan.request")


def _sample_rate() -> float:
    try:
        rate = float(os.environ.get("REQUEST_LOG_SAMPLE_RATE", _DEFAULT_SAMPLE_RATE))
    except ValueError:
        return _DEFAULT_SAMPLE_RATE
    return max(0.0, min(1.0, rate))


def _max_response_bytes() -> int:
    try:
        return max(0, int(os.environ.get("RESPONSE_BODY_MAX_BYTES", _DEFAULT_MAX_BYTES)))
    except ValueError:
        return _DEFAULT_MAX_BYTES


def _request_id() -> str:
    incoming = request.headers.get(HEADER_NAME, "").strip()
    if _REQUEST_ID_PATTERN.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


def _client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


def _should_log(path: str) -> bool:
    if path in _UNLOGGED_PATHS or path.startswith("/static"):
        return False
    rate = _sample_rate()
    return rate >= 1.0 or random.random() <= rate


def _request_payload() -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if request.args:
        payload["query"] = redact_sensitive_data(request.args.to_dict(flat=False))
    if request.method in {"POST", "PUT", "PATCH"}:
        body = request.get_json(silent=True)
        if body is not None:
            payload["json"] = redact_sensitive_data(body)
    return payload


def _response_body(response: Response) -> Optional[str]:
    limit = _max_response_bytes()
    if limit == 0 or response.direct_passthrough:
        return None
    body = response.get_data(as_text=True)
    if body and response.is_json:
        try:
            body = json.dumps(redact_sensitive_data(json.loads(body)), ensure_ascii=False)
        except ValueError:
            pass
    if len(body) > limit:
        return body[:limit] + f"... truncated {len(body) - limit} bytes"
    return body


def init_request_logging(app: Flask) -> None:
    """Tag each request with an ID and log ``request_start``/``request_end``.

    A well-formed ``X-Request-ID`` from the caller is reused, anything else
    is replaced by a uuid4. The ID is echoed on the response and attached to
    every log line written while the request is handled.
    """

    @app.before_request
    def _log_request_start() -> None:
        g.request_id = _request_id()
        set_request_id(g.request_id)
        g._request_start = time.perf_counter()
        g._log_request = _should_log(request.path)
        route = request.url_rule.rule if request.url_rule else None
        merge_request_context(
            method=request.method,
            path=request.path,
            client_ip=_client_ip(),
            user_agent=request.headers.get("User-Agent"),
            route=route,
        )
        if g._log_request:
            _request_logger.info(
                "request_start",
                extra={"event": "request_start", "request_payload": _request_payload()},
            )

    @app.after_request
    def _log_request_end(response: Response) -> Response:
        started = getattr(g, "_request_start", time.perf_counter())
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[HEADER_NAME] = g.get("request_id") or _request_id()
        merge_request_context(status=response.status_code, duration_ms=duration_ms)
        if getattr(g, "_log_request", False):
            _request_logger.info(
                "request_end",
                extra={
                    "event": "request_end",
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "response_body": _response_body(response),
                },
            )
        return response

    @app.teardown_request
    def _reset_context(_exc) -> None:
        clear_request_id()
        clear_request_context()


__all__ = ["HEADER_NAME", "init_request_logging"]
