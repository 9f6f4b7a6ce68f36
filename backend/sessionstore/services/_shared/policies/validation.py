"""Argument checks shared by every session token store."""

from __future__ import annotations

import math
from datetime import timedelta

from sessionstore.services._shared.errors import InvalidArgumentError

MAX_TOKEN_LENGTH = 4096


def require_user_id(user_id: object) -> int:
    """Return ``user_id`` if it is a positive integer."""
    # bool is an int subclass; reject it explicitly
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise InvalidArgumentError("user_id", "must be an integer")
    if user_id <= 0:
        raise InvalidArgumentError("user_id", "must be positive")
    return user_id


def require_token(token: object) -> str:
    """Return ``token`` if it is a usable opaque string."""
    if not isinstance(token, str) or not token:
        raise InvalidArgumentError("token", "must be a non-empty string")
    if len(token) > MAX_TOKEN_LENGTH:
        raise InvalidArgumentError("token", "too long")
    if any(ch.isspace() or not ch.isprintable() for ch in token):
        raise InvalidArgumentError("token", "must not contain whitespace or control characters")
    return token


def ttl_to_millis(ttl: object) -> int:
    """
    Convert a positive :class:`~datetime.timedelta` to whole milliseconds.

    Sub-millisecond remainders round up so a positive TTL never becomes zero.
    """
    if not isinstance(ttl, timedelta):
        raise InvalidArgumentError("ttl", "must be a timedelta")
    if ttl <= timedelta(0):
        raise InvalidArgumentError("ttl", "must be positive")
    return math.ceil(ttl / timedelta(milliseconds=1))
