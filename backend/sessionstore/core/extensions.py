"""Session store extension: builds the cache client and the store for an app."""

from __future__ import annotations

import atexit
import logging

from flask import Flask, current_app

from sessionstore.core.logger import ensure_request_id
from sessionstore.infra.redis.client import (
    RedisSettings,
    close_redis_client,
    create_redis_client,
)
from sessionstore.infra.redis.redis_session_token_store import RedisSessionTokenStore
from sessionstore.services._shared.context import OperationContext
from sessionstore.services._shared.ports import InMemorySessionTokenStore, SessionTokenStore

log = logging.getLogger(__name__)

STORE_KEY = "session_store"
REDIS_KEY = "redis_client"


def init_app(app: Flask) -> None:
    """Create the session token store and attach it to ``app.extensions``.

    Parameters
    ----------
    app: flask.Flask
        Application whose config provides ``REDIS_URL`` and friends. Without
        ``REDIS_URL`` a process-local :class:`InMemorySessionTokenStore` is
        used, which is only suitable for a single worker.

    Raises
    ------
    RuntimeError
        If ``REDIS_URL`` is set but the server cannot be reached.
    """
    settings = RedisSettings.from_config(app.config)
    if settings is None:
        log.warning("REDIS_URL not set; using in-memory session store")
        app.extensions.pop(REDIS_KEY, None)
        app.extensions[STORE_KEY] = InMemorySessionTokenStore()
        return

    client = create_redis_client(settings)
    # the pool lives as long as the worker process
    atexit.register(close_redis_client, client)
    app.extensions[REDIS_KEY] = client
    app.extensions[STORE_KEY] = RedisSessionTokenStore(
        r=client, key_prefix=app.config.get("SESSION_KEY_PREFIX", "")
    )


def get_session_store(app: Flask | None = None) -> SessionTokenStore:
    """Return the store initialized for ``app`` (defaults to ``current_app``)."""
    target = app or current_app
    store = target.extensions.get(STORE_KEY)
    if store is None:
        raise RuntimeError("Session store is not initialized. Call init_app() first.")
    return store


def operation_context() -> OperationContext:
    """Build a per-call context bounded by ``SESSION_OPERATION_TIMEOUT``.

    The context carries the current request id so store logs correlate with
    the request that triggered them.
    """
    timeout = float(current_app.config.get("SESSION_OPERATION_TIMEOUT", 2.0))
    return OperationContext.with_timeout(timeout, request_id=ensure_request_id())
