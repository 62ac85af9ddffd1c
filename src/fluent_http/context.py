"""
Cancellation scopes for fluent_http.

A Context bounds how long the awaited parts of a call (sending the
request, reading the response body) may take. Contexts form a tree:
a child inherits the earlier of its own and its parent's deadline and
is cancelled together with its parent.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from .exceptions import RequestCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CancelFunc = Callable[[], None]


class Context:
    """
    Cancellable scope with an optional deadline.

    Deadlines are expressed on the ``time.monotonic()`` clock.
    """

    def __init__(
        self,
        parent: Optional["Context"] = None,
        deadline: Optional[float] = None,
    ) -> None:
        if parent is not None and parent.deadline is not None:
            if deadline is None or parent.deadline < deadline:
                deadline = parent.deadline

        self._parent = parent
        self._deadline = deadline
        self._cancelled = False
        self._callbacks: List[CancelFunc] = []
        self._detach: Optional[CancelFunc] = None

        if parent is not None:
            if parent.cancelled:
                self._cancelled = True
            else:
                self._detach = parent.add_done_callback(self.cancel)

    @classmethod
    def background(cls) -> "Context":
        """Create a root context: never cancelled, no deadline."""
        return cls()

    def with_cancel(self) -> Tuple["Context", CancelFunc]:
        """Derive a child context and the function cancelling it."""
        child = Context(self)
        return child, child.cancel

    def with_timeout(self, timeout: float) -> Tuple["Context", CancelFunc]:
        """
        Derive a child context that expires after ``timeout`` seconds.

        Args:
            timeout: Timeout in seconds, must be positive

        Returns:
            The child context and the function cancelling it
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        child = Context(self, deadline=time.monotonic() + timeout)
        return child, child.cancel

    @property
    def parent(self) -> Optional["Context"]:
        return self._parent

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once the context is cancelled or its deadline has passed."""
        if self._cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def cancel(self) -> None:
        """Cancel this context and all of its children. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True

        if self._detach is not None:
            self._detach()
            self._detach = None

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_done_callback(self, callback: CancelFunc) -> CancelFunc:
        """
        Register ``callback`` to run when the context is cancelled.

        Returns:
            A function unregistering the callback
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return remove

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` within this context.

        Raises:
            asyncio.TimeoutError: If the deadline passes first
            RequestCancelledError: If the context is cancelled first
        """
        if self._cancelled:
            _discard(awaitable)
            raise RequestCancelledError("context cancelled")

        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            _discard(awaitable)
            raise asyncio.TimeoutError()

        task = asyncio.ensure_future(awaitable)
        remove = self.add_done_callback(task.cancel)
        try:
            return await asyncio.wait_for(task, remaining)
        except asyncio.CancelledError:
            if self._cancelled:
                logger.debug("Awaitable interrupted by context cancellation")
                raise RequestCancelledError("context cancelled") from None
            raise
        finally:
            remove()


def _discard(awaitable: Awaitable) -> None:
    # Close never-started coroutines so they do not warn when collected
    if asyncio.iscoroutine(awaitable):
        awaitable.close()
