"""Tiny helpers shared across test modules."""

from __future__ import annotations

from contextlib import contextmanager

import fakeredis
from redis.exceptions import ConnectionError as RedisConnectionError


@contextmanager
def not_raises(exception: type[BaseException]):
    """Context manager asserting that an exception is *not* raised.

    Parameters
    ----------
    exception: type[BaseException]
        Exception type that should not be raised within the context.
    """
    try:
        yield
    except exception as exc:  # pragma: no cover
        raise AssertionError(f"Did raise {exception}: {exc}") from exc


class FlakyRedis(fakeredis.FakeRedis):
    """FakeRedis whose ``DEL`` fails for selected keys and whose commands can be cut off.

    Attributes
    ----------
    fail_delete: set[str]
        Keys for which ``delete`` raises a connection error.
    down: bool
        When ``True`` every command raises a connection error.
    fail_script_keys: set[str]
        Lua script calls touching any of these keys raise a connection error.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fail_delete: set[str] = set()
        self.down = False
        self.fail_script_keys: set[str] = set()

    def execute_command(self, *args, **options):
        if self.down:
            raise RedisConnectionError("connection refused")
        if self._script_keys(args) & self.fail_script_keys:
            raise RedisConnectionError("connection reset during script")
        return super().execute_command(*args, **options)

    def delete(self, *names):
        for name in names:
            key = name.decode() if isinstance(name, bytes) else str(name)
            if key in self.fail_delete:
                raise RedisConnectionError(f"connection lost while deleting {key}")
        return super().delete(*names)

    @staticmethod
    def _script_keys(args) -> set[str]:
        # EVAL/EVALSHA <script|sha> <numkeys> key [key ...] arg [arg ...]
        if len(args) < 3 or str(args[0]).upper() not in {"EVALSHA", "EVAL"}:
            return set()
        numkeys = int(args[2])
        return {k.decode() if isinstance(k, bytes) else str(k) for k in args[3 : 3 + numkeys]}
