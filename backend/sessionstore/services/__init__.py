"""Service layer public API.

Re-exports
----------
- Operation context (from ``sessionstore.services._shared.context``)
    * :class:`OperationContext`

- Errors (from ``sessionstore.services._shared.errors``)
    * :class:`SessionStoreError`, :class:`NotFoundError`,
      :class:`TransientError`, :class:`InconsistentError`,
      :class:`PartialWriteError`, :class:`RevocationIncompleteError`,
      :class:`InvalidArgumentError`

- Ports (from ``sessionstore.services._shared.ports``)
    * :class:`SessionTokenStore`
    * :class:`InMemorySessionTokenStore`
"""

from __future__ import annotations

from ._shared.context import OperationContext
from ._shared.errors import (
    InconsistentError,
    InvalidArgumentError,
    NotFoundError,
    PartialWriteError,
    RevocationIncompleteError,
    SessionStoreError,
    TransientError,
)
from ._shared.ports import InMemorySessionTokenStore, SessionTokenStore

__all__ = [
    "OperationContext",
    "SessionStoreError",
    "NotFoundError",
    "TransientError",
    "InconsistentError",
    "PartialWriteError",
    "RevocationIncompleteError",
    "InvalidArgumentError",
    "SessionTokenStore",
    "InMemorySessionTokenStore",
]
