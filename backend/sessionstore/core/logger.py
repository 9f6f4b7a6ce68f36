"""JSON logging for the session service, correlated by request id."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")
MAX_REQUEST_ID_LENGTH = 128

# Structured fields copied from ``extra=`` into the JSON payload
EXTRA_KEYS = ("endpoint", "elapsed_ms", "op", "user_id", "token_fp", "count")

# Marks the handler installed by configure_logging so reconfiguring replaces it
_HANDLER_FLAG = "_sessionstore_json"


class JSONFormatter(logging.Formatter):
    """Render a log record as one JSON object per line.

    Only the keys listed in :data:`EXTRA_KEYS` are lifted from ``extra=``;
    anything else passed there stays out of the output.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on records that do not carry one yet.

    Store calls pass the id of their operation context explicitly, which
    also covers work done outside a request.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = ensure_request_id() if has_request_context() else None
        return True


def _incoming_request_id() -> str | None:
    for header in CORRELATION_HEADERS:
        value = (request.headers.get(header) or "").strip()
        # client-supplied: keep log lines bounded and single-line
        if value and len(value) <= MAX_REQUEST_ID_LENGTH and value.isprintable():
            return value
    return None


def ensure_request_id() -> str:
    """Return the current request id, adopting or minting it on first use.

    Outside a request context every call returns a fresh UUID4.
    """
    if not has_request_context():
        return str(uuid4())
    request_id = g.get("request_id")
    if request_id is None:
        request_id = _incoming_request_id() or str(uuid4())
        g.request_id = request_id
    return request_id


def configure_logging(level: str | int = "INFO", *, stream: IO[str] | None = None) -> None:
    """Send root logging to ``stream`` (stdout by default) as JSON lines.

    Calling it again replaces the handler it installed earlier; handlers
    added by others (test harnesses, WSGI servers) are left in place.
    """
    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, _HANDLER_FLAG, False)]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    setattr(handler, _HANDLER_FLAG, True)
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)


def init_app(app: Flask) -> None:
    """Seed a request id per request and echo it in the response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "JSONFormatter"]
