"""
Domain-level exceptions raised by session token stores.

These exceptions are **framework-agnostic** and must never import or depend
on Flask or HTTP. They are the stable contract between the store adapters
and the authentication workflow that consumes them.

The translation to HTTP responses (RFC 7807) is handled by
``sessionstore/core/errors.py``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class SessionStoreError(Exception):
    """
    Base class for all session store errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to problem responses.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(SessionStoreError):
    """
    Raised when a token is absent, expired or revoked.

    This is the expected outcome for a used token and callers should not
    log it as a failure.

    :param token: The token that could not be resolved.
    :type token: str
    """

    token: str

    def __str__(self) -> str:  # pragma: no cover
        return "Refresh token not found"


class TransientError(SessionStoreError):
    """
    Raised when the cache is unreachable, times out, or the operation
    context expired or was cancelled. Safe to retry with backoff.
    """

    def __init__(self, message: str = "Session cache temporarily unavailable") -> None:
        super().__init__(message)
        self.message = message


class InconsistentError(SessionStoreError):
    """
    Raised when the two indexes disagree and need repair.

    :param message: Short human-readable explanation.
    :param tokens: Tokens affected by the inconsistency.
    """

    def __init__(self, message: str, tokens: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.tokens: list[str] = list(tokens)


class PartialWriteError(InconsistentError):
    """Forward entry written but the reverse index could not be updated."""

    def __init__(self, token: str) -> None:
        super().__init__("Token issued but not tracked for bulk revocation", [token])


class RevocationIncompleteError(InconsistentError):
    """
    Raised by a bulk revocation that left some tokens live.

    :param user_id: Owner of the tokens.
    :param tokens: Tokens that could not be revoked.
    :param revoked: Number of tokens that were revoked.
    """

    def __init__(self, user_id: int, tokens: Iterable[str], revoked: int) -> None:
        super().__init__(f"Could not revoke all sessions for user {user_id}", tokens)
        self.user_id = user_id
        self.revoked = revoked


@dataclass(slots=True)
class InvalidArgumentError(SessionStoreError):
    """
    Raised for malformed input (caller bug, never retried).

    :param field: Name of the offending argument.
    :type field: str
    :param detail: Short explanation.
    :type detail: str
    """

    field: str
    detail: str = "invalid value"

    def __str__(self) -> str:  # pragma: no cover
        return f"Invalid {self.field}: {self.detail}"
