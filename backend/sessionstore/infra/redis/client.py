"""Redis connection factory with explicit pool lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

log = logging.getLogger(__name__)

DEFAULT_DIAL_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 3.0
DEFAULT_WRITE_TIMEOUT = 3.0


@dataclass(frozen=True, slots=True)
class RedisSettings:
    """
    Connection settings for the session cache.

    :ivar url: ``redis://`` URL (credentials and database included).
    :ivar dial_timeout: Seconds allowed to establish a connection.
    :ivar read_timeout: Seconds allowed for a reply.
    :ivar write_timeout: Seconds allowed to send a command.
    """

    url: str
    dial_timeout: float = DEFAULT_DIAL_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> RedisSettings | None:
        """Build settings from a Flask-style config mapping (``None`` without ``REDIS_URL``)."""
        url = config.get("REDIS_URL")
        if not url:
            return None
        return cls(
            url=url,
            dial_timeout=float(config.get("REDIS_DIAL_TIMEOUT") or DEFAULT_DIAL_TIMEOUT),
            read_timeout=float(config.get("REDIS_READ_TIMEOUT") or DEFAULT_READ_TIMEOUT),
            write_timeout=float(config.get("REDIS_WRITE_TIMEOUT") or DEFAULT_WRITE_TIMEOUT),
        )


def _redact(url: str) -> str:
    """Strip credentials from a Redis URL before it reaches logs or errors."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return parts._replace(netloc=f"***@{host}").geturl()


def create_redis_client(settings: RedisSettings) -> redis.Redis:
    """
    Create a pooled Redis client and verify connectivity.

    redis-py uses one socket timeout for both directions, so the larger of
    the read/write timeouts applies.

    :raises RuntimeError: If the server does not answer ``PING``.
    """
    pool = redis.ConnectionPool.from_url(
        settings.url,
        socket_connect_timeout=settings.dial_timeout,
        socket_timeout=max(settings.read_timeout, settings.write_timeout),
        decode_responses=True,
    )
    client = redis.Redis(connection_pool=pool)
    try:
        client.ping()
    except RedisError as exc:
        log.error("redis ping failed: %s", exc)
        pool.disconnect()
        raise RuntimeError(f"Failed to connect to Redis at {_redact(settings.url)!r}") from exc
    log.info("redis client initialized")
    return client


def close_redis_client(client: redis.Redis) -> None:
    """Close the client and drop every pooled connection."""
    log.info("closing redis connection")
    client.close()
    client.connection_pool.disconnect()
