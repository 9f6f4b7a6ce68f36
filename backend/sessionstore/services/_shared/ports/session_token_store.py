from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from sessionstore.services._shared.context import OperationContext
from sessionstore.services._shared.errors import (
    InvalidArgumentError,
    NotFoundError,
    TransientError,
)
from sessionstore.services._shared.policies.validation import (
    require_token,
    require_user_id,
    ttl_to_millis,
)


class SessionTokenStore(Protocol):
    """
    Stateful store for refresh tokens.

    Keeps a forward index (token -> user id) and a reverse index
    (user id -> set of tokens) so a user's sessions can be revoked in bulk.
    Every method accepts an optional :class:`OperationContext`; an expired
    or cancelled context fails with ``TransientError`` before touching the
    cache.
    """

    def issue(
        self,
        *,
        user_id: int,
        token: str,
        ttl: timedelta,
        ctx: OperationContext | None = None,
    ) -> None:
        """
        Register ``token`` for ``user_id`` with lifetime ``ttl``.

        Re-issuing a live token to its owner refreshes the TTL.

        :raises InvalidArgumentError: If ``token`` is live for another user.
        :raises PartialWriteError: If the token is resolvable but could not be
            added to the user's index.
        """

    def resolve(self, token: str, *, ctx: OperationContext | None = None) -> int:
        """
        Return the owner of ``token``.

        :raises NotFoundError: If the token is absent, expired or revoked.
        """

    def revoke_one(self, token: str, *, ctx: OperationContext | None = None) -> None:
        """Revoke a single token. Revoking an absent token is a no-op."""

    def revoke_all_for_user(self, user_id: int, *, ctx: OperationContext | None = None) -> int:
        """
        Revoke every token listed for ``user_id``.

        :returns: Number of tokens revoked.
        :raises RevocationIncompleteError: If some tokens could not be revoked.
        """

    def list_tokens(self, user_id: int, *, ctx: OperationContext | None = None) -> list[str]:
        """List the live tokens of a user (sorted)."""

    def ping(self, *, ctx: OperationContext | None = None) -> bool:
        """Return True when the backing cache is reachable."""


@dataclass(slots=True)
class _Entry:
    user_id: int
    expires_at: float


class InMemorySessionTokenStore(SessionTokenStore):
    """
    In-memory session token store.

    .. note::
       Uses a threading lock to emulate the cache's per-key atomicity. Expired
       entries are dropped lazily on access.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._by_token: dict[str, _Entry] = {}
        self._by_user: dict[int, set[str]] = {}
        self._user_expiry: dict[int, float] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    @staticmethod
    def _check(ctx: OperationContext | None) -> None:
        if ctx is not None:
            ctx.check()

    def _live(self, token: str, now: float) -> _Entry | None:
        entry = self._by_token.get(token)
        if entry is not None and entry.expires_at <= now:
            del self._by_token[token]
            return None
        return entry

    def _members(self, user_id: int, now: float) -> set[str]:
        if self._user_expiry.get(user_id, now + 1) <= now:
            self._by_user.pop(user_id, None)
            self._user_expiry.pop(user_id, None)
        return self._by_user.get(user_id, set())

    def _discard(self, user_id: int, tokens: set[str]) -> None:
        members = self._by_user.get(user_id)
        if members is None:
            return
        members.difference_update(tokens)
        if not members:
            # mirror the cache dropping empty sets
            del self._by_user[user_id]
            self._user_expiry.pop(user_id, None)

    # -------------------------- API ----------------------------

    def issue(
        self,
        *,
        user_id: int,
        token: str,
        ttl: timedelta,
        ctx: OperationContext | None = None,
    ) -> None:
        require_user_id(user_id)
        require_token(token)
        ttl_s = ttl_to_millis(ttl) / 1000
        self._check(ctx)
        with self._lock:
            now = self._clock()
            current = self._live(token, now)
            if current is not None and current.user_id != user_id:
                raise InvalidArgumentError("token", "already issued to another user")
            self._by_token[token] = _Entry(user_id=user_id, expires_at=now + ttl_s)
            self._members(user_id, now)
            self._by_user.setdefault(user_id, set()).add(token)
            self._user_expiry[user_id] = max(self._user_expiry.get(user_id, 0.0), now + ttl_s)

    def resolve(self, token: str, *, ctx: OperationContext | None = None) -> int:
        require_token(token)
        self._check(ctx)
        with self._lock:
            entry = self._live(token, self._clock())
        if entry is None:
            raise NotFoundError(token)
        return entry.user_id

    def revoke_one(self, token: str, *, ctx: OperationContext | None = None) -> None:
        require_token(token)
        self._check(ctx)
        with self._lock:
            entry = self._by_token.pop(token, None)
            if entry is not None:
                self._discard(entry.user_id, {token})

    def revoke_all_for_user(self, user_id: int, *, ctx: OperationContext | None = None) -> int:
        require_user_id(user_id)
        self._check(ctx)
        with self._lock:
            members = set(self._members(user_id, self._clock()))
            for token in members:
                entry = self._by_token.get(token)
                if entry is not None and entry.user_id == user_id:
                    del self._by_token[token]
            self._discard(user_id, members)
        return len(members)

    def list_tokens(self, user_id: int, *, ctx: OperationContext | None = None) -> list[str]:
        require_user_id(user_id)
        self._check(ctx)
        with self._lock:
            now = self._clock()
            members = self._members(user_id, now)
            stale = {t for t in members if self._live(t, now) is None}
            self._discard(user_id, stale)
            return sorted(members - stale)

    def ping(self, *, ctx: OperationContext | None = None) -> bool:
        try:
            self._check(ctx)
        except TransientError:
            return False
        return True
