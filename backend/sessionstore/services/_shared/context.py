from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from sessionstore.services._shared.errors import TransientError


@dataclass(slots=True)
class OperationContext:
    """
    Carry the deadline and cancellation state of one store call.

    Stores call :meth:`check` before every cache round-trip so an expired
    or cancelled context fails fast with :class:`TransientError` instead of
    issuing further commands. A command already in flight is not
    interrupted: it can overrun the deadline by up to the cache client's
    socket timeout (``REDIS_READ_TIMEOUT``/``REDIS_WRITE_TIMEOUT``).

    :param deadline: Absolute ``time.monotonic()`` value after which calls fail.
    :param request_id: Correlation id for logging/tracing.
    """

    deadline: float | None = None
    request_id: str | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float, *, request_id: str | None = None) -> OperationContext:
        """Build a context expiring ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds, request_id=request_id)

    def cancel(self) -> None:
        """Cancel every pending and future call made with this context."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline (``None`` when unbounded).

        For callers budgeting their own work (retries, backoff); stores only
        use :meth:`check`.
        """
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """
        Fail if the context can no longer be used.

        :raises TransientError: When cancelled or past the deadline.
        """
        if self._cancelled.is_set():
            raise TransientError("Operation cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise TransientError("Operation deadline exceeded")
