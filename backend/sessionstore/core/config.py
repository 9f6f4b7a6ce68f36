"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

DEFAULT_REFRESH_TOKEN_TTL: Final[timedelta] = timedelta(days=7)


# Load .env during development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_float(name: str, default: float) -> float:
    """Parse a float from an environment variable, falling back to ``default``.

    Raises
    ------
    ValueError
        If the variable is set but is not a number.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Defaults to a development-safe placeholder.
    REDIS_URL: str | None
        Session cache URL. When unset the process-local in-memory store is
        used instead of Redis.
    REDIS_DIAL_TIMEOUT: float
        Seconds allowed to open a cache connection.
    REDIS_READ_TIMEOUT: float
        Seconds allowed for a cache reply.
    REDIS_WRITE_TIMEOUT: float
        Seconds allowed to send a cache command.
    SESSION_KEY_PREFIX: str
        Namespace prepended to every session key.
    REFRESH_TOKEN_TTL: datetime.timedelta
        Lifetime applied to newly issued refresh tokens.
    SESSION_OPERATION_TIMEOUT: float
        Per-call deadline (seconds) for store operations made during a request.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    DEBUG: bool
        Toggles Flask debug mode.
    TESTING: bool
        Enables Flask testing mode when ``True``.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # Session cache
    REDIS_URL = os.getenv("REDIS_URL") or None
    REDIS_DIAL_TIMEOUT = env_float("REDIS_DIAL_TIMEOUT", 5.0)
    REDIS_READ_TIMEOUT = env_float("REDIS_READ_TIMEOUT", 3.0)
    REDIS_WRITE_TIMEOUT = env_float("REDIS_WRITE_TIMEOUT", 3.0)
    SESSION_KEY_PREFIX = os.getenv("SESSION_KEY_PREFIX", "")
    REFRESH_TOKEN_TTL = timedelta(
        seconds=env_float(
            "REFRESH_TOKEN_TTL_SECONDS", DEFAULT_REFRESH_TOKEN_TTL.total_seconds()
        )
    )
    SESSION_OPERATION_TIMEOUT = env_float("SESSION_OPERATION_TIMEOUT", 2.0)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses the in-memory store unless ``TEST_REDIS_URL`` is set.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    REDIS_URL = os.getenv("TEST_REDIS_URL") or None
    SESSION_KEY_PREFIX = "test:"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug disabled while relying on WSGI-level log configuration for
    noise control.
    """

    DEBUG = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
