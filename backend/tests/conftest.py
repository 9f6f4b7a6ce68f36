"""Pytest fixtures providing isolated session stores.

Every test gets a fresh in-memory Redis (``fakeredis``) so keys never leak
between cases, plus a Flask application wired to that same fake server.
"""

from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from flask import Flask

from sessionstore import create_app
from sessionstore.core import extensions
from sessionstore.core.config import TestingConfig
from sessionstore.infra.redis.redis_session_token_store import RedisSessionTokenStore


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    # A private server per test keeps parallel fixtures from sharing keys.
    r = fakeredis.FakeRedis(server=fakeredis.FakeServer())
    r.flushall()
    return r


@pytest.fixture
def store(fake_redis) -> RedisSessionTokenStore:
    """Provide a RedisSessionTokenStore backed by FakeRedis."""
    return RedisSessionTokenStore(r=fake_redis)


@pytest.fixture
def app(fake_redis) -> Generator[Flask, None, None]:
    """Create a Flask application whose session store uses ``fake_redis``.

    Notes
    -----
    - :class:`TestingConfig` leaves ``REDIS_URL`` unset, so the factory installs
      the in-memory store; the fixture then swaps in the Redis-backed store.
    - The app logger is quieted to keep test output readable.
    """
    application = create_app(TestingConfig)
    application.logger.setLevel("WARNING")
    application.extensions[extensions.STORE_KEY] = RedisSessionTokenStore(
        r=fake_redis, key_prefix=application.config["SESSION_KEY_PREFIX"]
    )
    with application.app_context():
        yield application


@pytest.fixture
def client(app: Flask):
    """Flask test client bound to :func:`app`."""
    return app.test_client()
