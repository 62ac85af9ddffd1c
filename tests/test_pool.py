"""
Unit tests for reusable-object pools.
"""

import io
import threading

import pytest

from fluent_http.pool import BUFFER_POOL, Pool


class Scratch:
    def __init__(self) -> None:
        self.items = []


class TestPool:
    """Test Pool functionality."""

    def test_acquire_creates_when_empty(self) -> None:
        """Test that acquire uses the factory when no object is idle."""
        pool = Pool(Scratch)
        obj = pool.acquire()
        assert isinstance(obj, Scratch)
        assert pool.metrics["total_created"] == 1
        assert pool.metrics["in_use"] == 1

    def test_release_then_reuse(self) -> None:
        """Test that released objects are handed out again."""
        pool = Pool(Scratch)
        obj = pool.acquire()
        pool.release(obj)

        assert len(pool) == 1
        assert pool.acquire() is obj
        assert pool.metrics["total_created"] == 1

    def test_reset_on_release(self) -> None:
        """Test that reset runs before an object is reused."""
        pool = Pool(Scratch, reset=lambda s: s.items.clear())
        obj = pool.acquire()
        obj.items.append("dirty")
        pool.release(obj)

        assert pool.acquire().items == []

    def test_max_idle(self) -> None:
        """Test that surplus objects are dropped."""
        pool = Pool(Scratch, max_idle=1)
        first, second = pool.acquire(), pool.acquire()
        pool.release(first)
        pool.release(second)

        assert len(pool) == 1
        assert pool.metrics["total_released"] == 2

    def test_invalid_max_idle(self) -> None:
        """Test that a negative max_idle is rejected."""
        with pytest.raises(ValueError):
            Pool(Scratch, max_idle=-1)

    def test_borrow_releases_on_error(self) -> None:
        """Test that borrow releases even when the block raises."""
        pool = Pool(Scratch)
        with pytest.raises(KeyError):
            with pool.borrow():
                raise KeyError("boom")

        assert len(pool) == 1
        assert pool.metrics["in_use"] == 0

    def test_concurrent_acquire_release(self) -> None:
        """Test that concurrent use never hands one object to two owners."""
        pool = Pool(Scratch)
        owners = {}
        errors = []

        def worker(n: int) -> None:
            for _ in range(200):
                obj = pool.acquire()
                if id(obj) in owners:
                    errors.append(n)
                owners[id(obj)] = n
                del owners[id(obj)]
                pool.release(obj)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert pool.metrics["in_use"] == 0


class TestBufferPool:
    """Test the shared byte-buffer pool."""

    def test_buffers_come_back_empty(self) -> None:
        """Test that a released buffer is truncated."""
        buf = BUFFER_POOL.acquire()
        assert isinstance(buf, io.BytesIO)
        buf.write(b"leftover")
        BUFFER_POOL.release(buf)

        with BUFFER_POOL.borrow() as again:
            assert again.getvalue() == b""
            assert again.tell() == 0
