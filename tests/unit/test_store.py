"""Unit tests for the IdempotencyStore.

Covers serialization through a real backend and every degraded path:
read failures, write failures, timeouts and malformed stored records.
"""

import asyncio

import pytest

from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.exceptions import SerializationError, StorageError
from idempotency_cache.models import CachedResponse
from idempotency_cache.storage.memory import MemoryStorageBackend
from idempotency_cache.store import IdempotencyStore, deserialize_response, serialize_response


CACHE_KEY = "idempotency:42:order-retry-001"


class FailingBackend:
    """Backend whose every call raises."""

    def __init__(self) -> None:
        self.closed = False

    async def get(self, key: str) -> str | None:
        raise StorageError("connection refused", operation="read")

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        raise StorageError("connection refused", operation="write")

    async def cleanup_expired(self) -> int:
        raise StorageError("connection refused", operation="cleanup")

    async def close(self) -> None:
        self.closed = True


class RefusingBackend(FailingBackend):
    """Backend whose driver errors escape without being wrapped."""

    async def get(self, key: str) -> str | None:
        raise ConnectionRefusedError(111, "Connect call failed")

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        raise ConnectionRefusedError(111, "Connect call failed")


class HangingBackend:
    """Backend whose calls never complete."""

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(60)
        return None

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        await asyncio.sleep(60)

    async def cleanup_expired(self) -> int:
        return 0

    async def close(self) -> None:
        pass


class TestSerialization:
    def test_round_trip(self, order_record: CachedResponse) -> None:
        assert deserialize_response(serialize_response(order_record)) == order_record

    @pytest.mark.parametrize("raw", ["not json", "{}", '{"status": 500, "body_b64": ""}'])
    def test_malformed_payload(self, raw: str) -> None:
        with pytest.raises(SerializationError):
            deserialize_response(raw)


class TestStoreWithBackend:
    @pytest.mark.asyncio
    async def test_store_then_get(
        self, store: IdempotencyStore, order_record: CachedResponse
    ) -> None:
        assert await store.store_cached_response(CACHE_KEY, order_record, 3600) is True

        cached = await store.get_cached_response(CACHE_KEY)

        assert cached == order_record

    @pytest.mark.asyncio
    async def test_miss(self, store: IdempotencyStore) -> None:
        assert await store.get_cached_response(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_expired_record_absent(
        self,
        store: IdempotencyStore,
        clock,
        order_record: CachedResponse,
    ) -> None:
        await store.store_cached_response(CACHE_KEY, order_record, 60)
        clock.advance(61)
        assert await store.get_cached_response(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_first_write_wins(
        self, store: IdempotencyStore, order_record: CachedResponse
    ) -> None:
        later = CachedResponse.from_body(201, {}, b'{"id": "ord_2"}')

        await store.store_cached_response(CACHE_KEY, order_record, 3600)
        await store.store_cached_response(CACHE_KEY, later, 3600)

        cached = await store.get_cached_response(CACHE_KEY)
        assert cached is not None
        assert cached.get_body_bytes() == b'{"id": "ord_1"}'

    @pytest.mark.asyncio
    async def test_malformed_record_treated_as_absent(
        self, store: IdempotencyStore, memory_backend: MemoryStorageBackend
    ) -> None:
        await memory_backend.put(CACHE_KEY, "{not json", 3600)
        assert await store.get_cached_response(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_close_closes_backend(
        self, store: IdempotencyStore, memory_backend: MemoryStorageBackend, order_record
    ) -> None:
        await store.store_cached_response(CACHE_KEY, order_record, 3600)
        await store.close()
        assert len(memory_backend) == 0


class TestFailOpen:
    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self) -> None:
        store = IdempotencyStore(FailingBackend())
        assert await store.get_cached_response(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_write_failure_reports_not_cached(self, order_record: CachedResponse) -> None:
        store = IdempotencyStore(FailingBackend())
        assert await store.store_cached_response(CACHE_KEY, order_record, 3600) is False

    @pytest.mark.asyncio
    async def test_read_timeout_is_a_miss(self) -> None:
        store = IdempotencyStore(HangingBackend(), timeout_seconds=0.05)
        assert await store.get_cached_response(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_write_timeout_reports_not_cached(self, order_record: CachedResponse) -> None:
        store = IdempotencyStore(HangingBackend(), timeout_seconds=0.05)
        assert await store.store_cached_response(CACHE_KEY, order_record, 3600) is False

    @pytest.mark.asyncio
    async def test_unwrapped_connection_error_on_read_is_a_miss(self) -> None:
        store = IdempotencyStore(RefusingBackend())
        assert await store.get_cached_response(CACHE_KEY) is None

    @pytest.mark.asyncio
    async def test_unwrapped_connection_error_on_write_reports_not_cached(
        self, order_record: CachedResponse
    ) -> None:
        store = IdempotencyStore(RefusingBackend())
        assert await store.store_cached_response(CACHE_KEY, order_record, 3600) is False

    @pytest.mark.asyncio
    async def test_programming_errors_propagate(self) -> None:
        class BrokenBackend(FailingBackend):
            async def get(self, key: str) -> str | None:
                raise RuntimeError("bug")

        store = IdempotencyStore(BrokenBackend())
        with pytest.raises(RuntimeError):
            await store.get_cached_response(CACHE_KEY)


def test_from_config_uses_configured_backend() -> None:
    config = IdempotencyConfig(storage_backend="memory", storage_timeout_seconds=0.5)
    store = IdempotencyStore.from_config(config)
    assert isinstance(store.backend, MemoryStorageBackend)
    assert store.timeout_seconds == 0.5
