# comments in English; reST docstrings
from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import redis  # type: ignore[import-untyped]
from redis.exceptions import (  # type: ignore[import-untyped]
    ConnectionError as RedisConnectionError,
)
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from redis.exceptions import TimeoutError as RedisTimeoutError  # type: ignore[import-untyped]

from sessionstore.services._shared.context import OperationContext
from sessionstore.services._shared.errors import (
    InconsistentError,
    InvalidArgumentError,
    NotFoundError,
    PartialWriteError,
    RevocationIncompleteError,
    TransientError,
)
from sessionstore.services._shared.policies.validation import (
    require_token,
    require_user_id,
    ttl_to_millis,
)
from sessionstore.services._shared.ports import SessionTokenStore

log = logging.getLogger(__name__)

# Write the forward entry unless the token already belongs to another user.
# Returns the current owner on conflict, nil once written.
LUA_CLAIM_TOKEN = r"""
local current = redis.call('GET', KEYS[1])
if current and current ~= ARGV[1] then
  return current
end
redis.call('SET', KEYS[1], ARGV[1], 'PX', ARGV[2])
return false
"""

# Add one member to a user's set and extend the set TTL to at least ARGV[2] ms.
# PTTL is -1 for a freshly created set, so the first issue always sets it.
LUA_TRACK_TOKEN = r"""
redis.call('SADD', KEYS[1], ARGV[1])
local ttl = tonumber(ARGV[2])
local current = redis.call('PTTL', KEYS[1])
if current < ttl then
  redis.call('PEXPIRE', KEYS[1], ttl)
  return ttl
end
return current
"""


def _s(value: Any) -> str:
    """Decode a Redis reply that may be bytes (client without ``decode_responses``)."""
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _fp(token: str) -> str:
    """Short digest used to mention a token in logs without leaking it."""
    return hashlib.sha256(token.encode()).hexdigest()[:12]


@dataclass(slots=True)
class RedisSessionTokenStore(SessionTokenStore):
    """
    Redis-backed refresh token store.

    Layout
    ------
    - ``{prefix}refresh_token:{token}`` -> user id (string), ``PX`` = token lifetime.
    - ``{prefix}user_tokens:{user_id}`` -> set of tokens, TTL = longest member.

    Members are added with ``SADD`` (inside a script that also extends the
    set TTL) and removed with ``SREM``; the set is never rebuilt from a
    snapshot, so concurrent issue/revoke calls on the same user never lose
    each other's updates.

    :param r: A Redis client (already connected). The store does not own it.
    :param key_prefix: Optional namespace prepended to every key.
    """

    r: redis.Redis
    key_prefix: str = ""
    _claim: Any = field(init=False, repr=False)
    _track: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._claim = self.r.register_script(LUA_CLAIM_TOKEN)
        self._track = self.r.register_script(LUA_TRACK_TOKEN)

    # -------------------- helpers --------------------

    def _k(self, token: str) -> str:
        return f"{self.key_prefix}refresh_token:{token}"

    def _ku(self, user_id: int) -> str:
        return f"{self.key_prefix}user_tokens:{user_id}"

    @staticmethod
    @contextmanager
    def _cache_call(ctx: OperationContext, op: str) -> Iterator[None]:
        """
        Guard one cache round-trip.

        Fails fast when ``ctx`` is expired or cancelled and maps connectivity
        problems to :class:`TransientError`. Other Redis errors propagate.

        The deadline is checked between commands only; a command already
        sent is bounded by the client's socket timeout, not by ``ctx``.
        """
        ctx.check()
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as exc:
            log.warning(
                "session cache unavailable during %s: %s",
                op,
                exc,
                extra={"op": op, "request_id": ctx.request_id},
            )
            raise TransientError(f"Session cache unavailable during {op}") from exc

    @staticmethod
    def _owner(token: str, raw: Any) -> int:
        text = _s(raw)
        # int() would also accept "4_2", " 42 " or "+42"
        if not (text.isascii() and text.isdigit()) or int(text) <= 0:
            log.error("corrupt refresh token entry", extra={"token_fp": _fp(token)})
            raise InconsistentError("Corrupt refresh token entry", [token])
        return int(text)

    # -------------------- API ------------------------

    def issue(
        self,
        *,
        user_id: int,
        token: str,
        ttl: timedelta,
        ctx: OperationContext | None = None,
    ) -> None:
        """
        Write the forward entry, then track the token in the user's set.

        The forward entry is written first: a token that is resolvable but
        untracked is reported as :class:`PartialWriteError`, whereas the
        reverse order would leave set members pointing at nothing.

        A token never changes owner: re-issuing it to the same user refreshes
        its TTL, issuing it to another user is rejected.

        :raises InvalidArgumentError: If ``token`` is live for another user.
        """
        uid = require_user_id(user_id)
        require_token(token)
        ttl_ms = ttl_to_millis(ttl)
        ctx = ctx or OperationContext()

        with self._cache_call(ctx, "issue"):
            current = self._claim(keys=[self._k(token)], args=[str(uid), ttl_ms])
        if current is not None:
            log.warning(
                "refresh token already issued to another user",
                extra={"op": "issue", "user_id": uid, "token_fp": _fp(token)},
            )
            raise InvalidArgumentError("token", "already issued to another user")

        try:
            with self._cache_call(ctx, "issue"):
                self._track(keys=[self._ku(uid)], args=[token, ttl_ms])
        except (TransientError, RedisError) as exc:
            log.error(
                "refresh token issued but not indexed",
                extra={
                    "op": "issue",
                    "user_id": uid,
                    "token_fp": _fp(token),
                    "request_id": ctx.request_id,
                },
            )
            raise PartialWriteError(token) from exc

    def resolve(self, token: str, *, ctx: OperationContext | None = None) -> int:
        require_token(token)
        ctx = ctx or OperationContext()
        with self._cache_call(ctx, "resolve"):
            raw = self.r.get(self._k(token))
        if raw is None:
            log.debug("refresh token not found", extra={"op": "resolve", "token_fp": _fp(token)})
            raise NotFoundError(token)
        return self._owner(token, raw)

    def revoke_one(self, token: str, *, ctx: OperationContext | None = None) -> None:
        """
        Delete the forward entry and remove the token from its owner's set.

        Both writes run in one MULTI/EXEC so other members and the set TTL are
        untouched. An absent token is a no-op, so logout can be retried.
        """
        require_token(token)
        ctx = ctx or OperationContext()
        with self._cache_call(ctx, "revoke_one"):
            raw = self.r.get(self._k(token))
        if raw is None:
            log.debug(
                "revoke of absent token ignored",
                extra={"op": "revoke_one", "token_fp": _fp(token)},
            )
            return

        try:
            uid = self._owner(token, raw)
        except InconsistentError:
            # No usable owner: drop the forward entry so the token dies anyway
            with self._cache_call(ctx, "revoke_one"):
                self.r.delete(self._k(token))
            return

        with self._cache_call(ctx, "revoke_one"):
            with self.r.pipeline(transaction=True) as p:
                p.delete(self._k(token))
                p.srem(self._ku(uid), token)
                p.execute()

    def revoke_all_for_user(self, user_id: int, *, ctx: OperationContext | None = None) -> int:
        """
        Revoke every token listed for ``user_id`` at enumeration time.

        Forward entries are deleted one by one and a failure does not stop the
        loop. Only the tokens actually revoked are then removed from the set:
        failed ones stay listed for a retry, and tokens issued concurrently
        keep both index entries.

        :returns: Number of tokens revoked.
        :raises RevocationIncompleteError: Listing the tokens still live.
        """
        uid = require_user_id(user_id)
        ctx = ctx or OperationContext()
        key_u = self._ku(uid)

        with self._cache_call(ctx, "revoke_all_for_user"):
            members = sorted(_s(m) for m in self.r.smembers(key_u))
        if not members:
            return 0

        revoked: list[str] = []
        failed: list[str] = []
        for token in members:
            try:
                with self._cache_call(ctx, "revoke_all_for_user"):
                    self.r.delete(self._k(token))
            except (TransientError, RedisError):
                failed.append(token)
                continue
            revoked.append(token)

        cleanup_error: TransientError | None = None
        if revoked:
            try:
                with self._cache_call(ctx, "revoke_all_for_user"):
                    self.r.srem(key_u, *revoked)
            except TransientError as exc:
                cleanup_error = exc

        if failed:
            log.error(
                "bulk revocation incomplete: %d of %d tokens revoked",
                len(revoked),
                len(members),
                extra={
                    "op": "revoke_all_for_user",
                    "user_id": uid,
                    "count": len(failed),
                    "request_id": ctx.request_id,
                },
            )
            raise RevocationIncompleteError(uid, failed, len(revoked)) from cleanup_error
        if cleanup_error is not None:
            raise cleanup_error

        log.info(
            "revoked user sessions",
            extra={
                "op": "revoke_all_for_user",
                "user_id": uid,
                "count": len(revoked),
                "request_id": ctx.request_id,
            },
        )
        return len(revoked)

    def list_tokens(self, user_id: int, *, ctx: OperationContext | None = None) -> list[str]:
        """
        Return the user's live tokens, pruning members whose entry expired.
        """
        uid = require_user_id(user_id)
        ctx = ctx or OperationContext()
        key_u = self._ku(uid)

        with self._cache_call(ctx, "list_tokens"):
            members = sorted(_s(m) for m in self.r.smembers(key_u))
        if not members:
            return []

        with self._cache_call(ctx, "list_tokens"):
            with self.r.pipeline(transaction=False) as p:
                for token in members:
                    p.exists(self._k(token))
                flags = p.execute()

        live = [t for t, exists in zip(members, flags) if exists]
        stale = [t for t, exists in zip(members, flags) if not exists]
        if stale:
            # Remove all stale entries from the user's index in one call
            with self._cache_call(ctx, "list_tokens"):
                self.r.srem(key_u, *stale)
        return live

    def ping(self, *, ctx: OperationContext | None = None) -> bool:
        ctx = ctx or OperationContext()
        try:
            with self._cache_call(ctx, "ping"):
                return bool(self.r.ping())
        except TransientError:
            return False
