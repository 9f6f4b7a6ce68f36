"""Integration tests for store selection in the application factory."""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest

from sessionstore import create_app
from sessionstore.core import extensions
from sessionstore.core.config import TestingConfig
from sessionstore.infra.redis.client import RedisSettings, close_redis_client
from sessionstore.infra.redis.redis_session_token_store import RedisSessionTokenStore
from sessionstore.services import InMemorySessionTokenStore, OperationContext


class RedisTestingConfig(TestingConfig):
    REDIS_URL = "redis://cache.invalid:6379/0"
    REDIS_READ_TIMEOUT = 0.5
    SESSION_OPERATION_TIMEOUT = 0.25


def test_without_redis_url_uses_in_memory_store():
    app = create_app(TestingConfig)

    store = extensions.get_session_store(app)

    assert isinstance(store, InMemorySessionTokenStore)
    assert extensions.REDIS_KEY not in app.extensions


def test_with_redis_url_uses_redis_store(monkeypatch):
    fake = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    seen: list[RedisSettings] = []

    def _fake_client(settings):
        seen.append(settings)
        return fake

    monkeypatch.setattr(extensions, "create_redis_client", _fake_client)
    registered: list[tuple] = []
    monkeypatch.setattr(extensions.atexit, "register", lambda fn, *args: registered.append((fn, args)))

    app = create_app(RedisTestingConfig)
    store = extensions.get_session_store(app)

    assert isinstance(store, RedisSessionTokenStore)
    assert app.extensions[extensions.REDIS_KEY] is fake
    assert seen[0].read_timeout == 0.5
    assert registered == [(close_redis_client, (fake,))]

    store.issue(user_id=1, token="tok", ttl=timedelta(minutes=5))
    assert fake.get("test:refresh_token:tok") == "1"


def test_unreachable_redis_fails_startup(monkeypatch):
    def _refuse(settings):
        raise RuntimeError("Failed to connect to Redis")

    monkeypatch.setattr(extensions, "create_redis_client", _refuse)

    with pytest.raises(RuntimeError):
        create_app(RedisTestingConfig)


def test_get_session_store_requires_init():
    app = create_app(TestingConfig)
    app.extensions.pop(extensions.STORE_KEY)

    with pytest.raises(RuntimeError):
        extensions.get_session_store(app)


def test_operation_context_uses_configured_timeout():
    app = create_app(TestingConfig)
    app.config["SESSION_OPERATION_TIMEOUT"] = 0.25

    with app.test_request_context(headers={"X-Request-ID": "req-ctx"}):
        ctx = extensions.operation_context()

    assert isinstance(ctx, OperationContext)
    assert ctx.request_id == "req-ctx"
    remaining = ctx.remaining()
    assert remaining is not None and remaining <= 0.25
