"""
Reusable-object pools for fluent_http.

Short-lived, single-use-per-call objects (scratch buffers, codec
instances, request builder state, multipart writers) are drawn from
a pool, used by exactly one call and handed back.
"""

import io
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Pool(Generic[T]):
    """
    Thread-safe free list of reusable objects.

    Objects are created on demand by ``factory`` and reset with
    ``reset`` when they are released. At most ``max_idle`` released
    objects are kept; any surplus is dropped.
    """

    def __init__(
        self,
        factory: Callable[[], T],
        reset: Optional[Callable[[T], None]] = None,
        max_idle: int = 64,
    ) -> None:
        """
        Initialize the pool.

        Args:
            factory: Callable creating a new object
            reset: Optional callable clearing an object before reuse
            max_idle: Maximum number of idle objects kept
        """
        if max_idle < 0:
            raise ValueError("max_idle must be non-negative")

        self._factory = factory
        self._reset = reset
        self._max_idle = max_idle
        self._idle: List[T] = []
        self._lock = threading.Lock()

        # Metrics
        self._total_created = 0
        self._total_acquired = 0
        self._total_released = 0

    def acquire(self) -> T:
        """Take an idle object, creating one if none is available."""
        with self._lock:
            self._total_acquired += 1
            if self._idle:
                return self._idle.pop()
            self._total_created += 1
            created = self._total_created

        logger.debug(f"Pool growing: creating object #{created}")
        return self._factory()

    def release(self, obj: T) -> None:
        """Reset an object and make it available again."""
        if self._reset is not None:
            self._reset(obj)

        with self._lock:
            self._total_released += 1
            if len(self._idle) < self._max_idle:
                self._idle.append(obj)

    @contextmanager
    def borrow(self) -> Iterator[T]:
        """Acquire an object for the duration of a ``with`` block."""
        obj = self.acquire()
        try:
            yield obj
        finally:
            self.release(obj)

    def __len__(self) -> int:
        """Number of idle objects."""
        with self._lock:
            return len(self._idle)

    @property
    def metrics(self) -> Dict[str, Any]:
        """
        Get pool metrics.

        Returns:
            Dictionary with pool metrics
        """
        with self._lock:
            return {
                "idle": len(self._idle),
                "total_created": self._total_created,
                "total_acquired": self._total_acquired,
                "total_released": self._total_released,
                "in_use": self._total_acquired - self._total_released,
                "max_idle": self._max_idle,
            }


def _reset_buffer(buf: io.BytesIO) -> None:
    buf.seek(0)
    buf.truncate()


BUFFER_POOL: Pool[io.BytesIO] = Pool(io.BytesIO, reset=_reset_buffer)
