"""
sessionstore.services._shared.ports
===================================

*Ports* (hexagonal interfaces) defining the contract for refresh-token
session storage.

Modules
-------
- :mod:`session_token_store`:
    Defines :class:`~.SessionTokenStore` — issue, resolve and revoke refresh
    tokens, with bulk revocation per user — and
    :class:`~.InMemorySessionTokenStore`, a process-local implementation.

Design Notes
------------
The service layer depends only on the protocol. Concrete adapters (Redis)
live under ``sessionstore.infra``.
"""

from __future__ import annotations

from .session_token_store import InMemorySessionTokenStore, SessionTokenStore

__all__ = [
    "SessionTokenStore",
    "InMemorySessionTokenStore",
]
