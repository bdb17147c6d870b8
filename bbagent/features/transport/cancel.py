"""Cooperative cancellation for transport calls.

A :class:`CancellationToken` is shared between the caller and the transport.
Backoff waits and in-flight network calls wait on the token, so a cancel
from another thread interrupts them immediately; an optional deadline bounds
both the waits and the timeout handed to each network call.
"""

import threading
import time
from collections.abc import Callable

from bbagent.features.transport.errors import RequestCancelledError


class OperationCancelledError(Exception):
    """Default cause recorded when a token is cancelled without one."""


class DeadlineExceededError(TimeoutError):
    """Cause recorded when a token's deadline passes."""


class CancellationToken:
    """Thread-safe cancellation token with an optional deadline.

    Examples:
        >>> token = CancellationToken.with_timeout(5.0)
        >>> # From another thread
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self, deadline: float | None = None) -> None:
        """Initialize a new cancellation token.

        Args:
            deadline: Optional ``time.monotonic()`` value after which the
                token counts as cancelled.
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._cause: BaseException | None = None
        self._deadline = deadline
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """Create a token that expires ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, cause: BaseException | None = None) -> None:
        """Signal that cancellation has been requested.

        Only the first cause is kept.

        Args:
            cause: Why the operation was cancelled.
        """
        with self._lock:
            if self._cause is None:
                self._cause = cause or OperationCancelledError("cancelled by caller")
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` once when the token is cancelled.

        The callback runs immediately if the token is already cancelled.
        Deadline expiry does not trigger callbacks.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def is_cancelled(self) -> bool:
        """Check if cancellation was requested or the deadline passed."""
        if self._event.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    @property
    def cause(self) -> BaseException | None:
        """The cancellation cause, or None while the token is live."""
        with self._lock:
            if self._cause is not None:
                return self._cause
        if self.is_cancelled():
            return DeadlineExceededError("deadline exceeded")
        return None

    def wait(self, seconds: float) -> bool:
        """Block for up to ``seconds``, returning early on cancellation.

        Args:
            seconds: Maximum time to wait.

        Returns:
            True if the token was cancelled before the wait completed.
        """
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._event.wait(max(0.0, timeout))
        return self.is_cancelled()

    def raise_if_cancelled(self) -> None:
        """Raise RequestCancelledError carrying the cause, if cancelled."""
        if self.is_cancelled():
            cause = self.cause or OperationCancelledError("cancelled")
            raise RequestCancelledError(cause) from cause
