"""
Cancellation and deadlines for restic commands.

A ``Context`` is passed into every repository call. Cancelling it, or letting
its deadline pass, kills the running restic process and makes the call raise
``CommandCancelledError`` / ``DeadlineExceededError``.
"""

import threading
import time
from typing import Optional

from restic_py.errors import CommandCancelledError, DeadlineExceededError


class Context:
    """A cancellable context with an optional deadline."""

    def __init__(
        self, timeout: Optional[float] = None, parent: Optional["Context"] = None
    ):
        """
        Create a new context.

        Args:
            timeout: Seconds until the context expires, None for no deadline
            parent: Context whose cancellation and deadline also apply to this one
        """
        self._cancelled = threading.Event()
        self._parent = parent
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    def with_timeout(self, timeout: float) -> "Context":
        """Derive a child context expiring after *timeout* seconds."""
        return Context(timeout=timeout, parent=self)

    def with_cancel(self) -> "Context":
        """Derive a child context that can be cancelled on its own."""
        return Context(parent=self)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def deadline(self) -> Optional[float]:
        """The effective deadline on the ``time.monotonic`` clock."""
        candidates = (self._deadline, self._parent_deadline())
        deadlines = [d for d in candidates if d is not None]
        return min(deadlines) if deadlines else None

    def _parent_deadline(self) -> Optional[float]:
        return self._parent.deadline if self._parent else None

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, None when there is none."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def error(self) -> Optional[CommandCancelledError]:
        """Return why the context is done, or None while it is still live."""
        if self._cancelled.is_set():
            return CommandCancelledError()
        if self._parent is not None:
            parent_error = self._parent.error()
            if parent_error is not None:
                return parent_error
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceededError()
        return None

    def done(self) -> bool:
        return self.error() is not None


def background() -> Context:
    """Return a context that is never cancelled and has no deadline."""
    return Context()
