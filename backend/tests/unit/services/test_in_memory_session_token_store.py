# tests/unit/services/test_in_memory_session_token_store.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from sessionstore.services import (
    InMemorySessionTokenStore,
    InvalidArgumentError,
    NotFoundError,
    OperationContext,
    TransientError,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def mem(clock) -> InMemorySessionTokenStore:
    return InMemorySessionTokenStore(clock=clock)


# -------------------------------- Tests ----------------------------------- #
def test_issue_resolve_and_logout_scenario(mem):
    mem.issue(user_id=42, token="tok-A", ttl=timedelta(hours=1))
    mem.issue(user_id=42, token="tok-B", ttl=timedelta(hours=1))

    mem.revoke_one("tok-A")
    with pytest.raises(NotFoundError):
        mem.resolve("tok-A")
    assert mem.resolve("tok-B") == 42

    assert mem.revoke_all_for_user(42) == 1
    with pytest.raises(NotFoundError):
        mem.resolve("tok-B")


def test_tokens_expire_with_the_clock(mem, clock):
    mem.issue(user_id=1, token="short", ttl=timedelta(milliseconds=1))
    clock.advance(0.005)

    with pytest.raises(NotFoundError):
        mem.resolve("short")


def test_list_tokens_drops_expired_members(mem, clock):
    mem.issue(user_id=3, token="a", ttl=timedelta(seconds=10))
    mem.issue(user_id=3, token="b", ttl=timedelta(seconds=100))
    clock.advance(50)

    assert mem.list_tokens(3) == ["b"]


def test_user_index_outlives_every_member(mem, clock):
    mem.issue(user_id=4, token="long", ttl=timedelta(seconds=100))
    mem.issue(user_id=4, token="short", ttl=timedelta(seconds=1))
    clock.advance(10)

    assert mem.list_tokens(4) == ["long"]
    assert mem.revoke_all_for_user(4) == 1


def test_revoke_is_idempotent_and_isolated(mem):
    mem.issue(user_id=1, token="A", ttl=timedelta(hours=1))
    mem.issue(user_id=2, token="B", ttl=timedelta(hours=1))

    mem.revoke_one("A")
    mem.revoke_one("A")
    assert mem.revoke_all_for_user(1) == 0
    assert mem.resolve("B") == 2


def test_concurrent_issues_are_all_tracked(mem):
    tokens = [f"t{i}" for i in range(50)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda t: mem.issue(user_id=9, token=t, ttl=timedelta(hours=1)), tokens))

    assert mem.list_tokens(9) == sorted(tokens)


def test_validation_matches_redis_store(mem):
    with pytest.raises(InvalidArgumentError):
        mem.issue(user_id=0, token="x", ttl=timedelta(hours=1))
    with pytest.raises(InvalidArgumentError):
        mem.resolve("")
    with pytest.raises(InvalidArgumentError):
        mem.revoke_all_for_user(-1)


def test_cancelled_context_fails_and_ping_reports_it(mem):
    ctx = OperationContext()
    ctx.cancel()

    with pytest.raises(TransientError):
        mem.issue(user_id=5, token="x", ttl=timedelta(hours=1), ctx=ctx)
    assert mem.ping(ctx=ctx) is False
    assert mem.ping() is True


def test_token_owner_never_changes(mem):
    mem.issue(user_id=1, token="dup", ttl=timedelta(hours=1))

    with pytest.raises(InvalidArgumentError) as exc_info:
        mem.issue(user_id=2, token="dup", ttl=timedelta(hours=1))

    assert exc_info.value.field == "token"
    assert mem.resolve("dup") == 1
    assert mem.list_tokens(2) == []


def test_reissue_to_owner_extends_lifetime(mem, clock):
    mem.issue(user_id=1, token="again", ttl=timedelta(seconds=10))
    mem.issue(user_id=1, token="again", ttl=timedelta(seconds=100))
    clock.advance(50)

    assert mem.resolve("again") == 1


def test_expired_token_reissued_elsewhere_survives_old_owner_revoke(mem, clock):
    mem.issue(user_id=1, token="recycled", ttl=timedelta(seconds=10))
    mem.issue(user_id=1, token="keep", ttl=timedelta(seconds=100))
    clock.advance(20)
    mem.issue(user_id=2, token="recycled", ttl=timedelta(seconds=100))

    mem.revoke_all_for_user(1)

    assert mem.resolve("recycled") == 2
