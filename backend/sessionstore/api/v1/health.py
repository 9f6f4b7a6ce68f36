"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app

from sessionstore.api.deps import json_response, timing
from sessionstore.core.extensions import get_session_store, operation_context

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application and session cache health information.

    Responds 503 when the cache is unreachable so load balancers stop routing
    logins to this instance.
    """

    cache_ok = get_session_store().ping(ctx=operation_context())
    version = current_app.config.get("APP_VERSION", "dev")
    payload = {
        "status": "ok" if cache_ok else "degraded",
        "cache": "ok" if cache_ok else "fail",
        "version": version,
    }
    return json_response(payload, status=200 if cache_ok else 503)
