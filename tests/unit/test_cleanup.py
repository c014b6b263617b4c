"""Unit tests for expired-record cleanup."""

import asyncio

import pytest

from idempotency_cache.core.cleanup import (
    cleanup_expired_idempotency_entries,
    cleanup_loop,
    start_cleanup_task,
    stop_cleanup_task,
)
from idempotency_cache.exceptions import StorageError
from idempotency_cache.storage.memory import MemoryStorageBackend


class CountingBackend:
    """Backend recording how often it is swept."""

    def __init__(self, removed: int = 0) -> None:
        self.removed = removed
        self.sweeps = 0

    async def get(self, key: str) -> str | None:
        return None

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        pass

    async def cleanup_expired(self) -> int:
        self.sweeps += 1
        return self.removed

    async def close(self) -> None:
        pass


class BrokenBackend(CountingBackend):
    async def cleanup_expired(self) -> int:
        raise StorageError("database is locked", operation="cleanup")


class TestCleanupExpiredEntries:
    @pytest.mark.asyncio
    async def test_returns_removed_count(self, memory_backend: MemoryStorageBackend, clock) -> None:
        await memory_backend.put("idempotency:1:aaaaaaaa", "{}", 60)
        await memory_backend.put("idempotency:1:bbbbbbbb", "{}", 60)
        await memory_backend.put("idempotency:1:cccccccc", "{}", 3600)
        clock.advance(120)

        assert await cleanup_expired_idempotency_entries(memory_backend) == 2
        assert len(memory_backend) == 1

    @pytest.mark.asyncio
    async def test_nothing_expired(self, memory_backend: MemoryStorageBackend) -> None:
        await memory_backend.put("idempotency:1:aaaaaaaa", "{}", 60)
        assert await cleanup_expired_idempotency_entries(memory_backend) == 0

    @pytest.mark.asyncio
    async def test_never_raises(self) -> None:
        assert await cleanup_expired_idempotency_entries(BrokenBackend()) == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_also_absorbed(self) -> None:
        class WorseBackend(CountingBackend):
            async def cleanup_expired(self) -> int:
                raise RuntimeError("driver crashed")

        assert await cleanup_expired_idempotency_entries(WorseBackend()) == 0


class TestCleanupLoop:
    @pytest.mark.asyncio
    async def test_stops_when_event_set(self) -> None:
        backend = CountingBackend(removed=3)
        stop_event = asyncio.Event()

        task = asyncio.create_task(cleanup_loop(backend, interval_seconds=1, stop_event=stop_event))
        await asyncio.sleep(0.05)
        stop_event.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert backend.sweeps == 1

    @pytest.mark.asyncio
    async def test_survives_failing_sweeps(self) -> None:
        backend = BrokenBackend()

        task = await start_cleanup_task(backend, interval_seconds=1)
        await asyncio.sleep(0.05)

        assert not task.done()
        await stop_cleanup_task(task)
        assert task.done()

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        backend = CountingBackend()

        task = await start_cleanup_task(backend, interval_seconds=60)
        await asyncio.sleep(0.05)
        await stop_cleanup_task(task)

        assert task.done()
        assert backend.sweeps == 1
