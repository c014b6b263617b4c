"""Shared fixtures for the idempotency cache test suite."""

from datetime import UTC, datetime, timedelta

import pytest

from idempotency_cache.models import CachedResponse
from idempotency_cache.storage.memory import MemoryStorageBackend
from idempotency_cache.store import IdempotencyStore


class FrozenClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def memory_backend(clock: FrozenClock) -> MemoryStorageBackend:
    """Fresh in-memory backend driven by the frozen clock."""
    return MemoryStorageBackend(clock=clock)


@pytest.fixture
def store(memory_backend: MemoryStorageBackend) -> IdempotencyStore:
    return IdempotencyStore(memory_backend, timeout_seconds=1.0)


@pytest.fixture
def order_record() -> CachedResponse:
    """A captured 201 order creation."""
    return CachedResponse.from_body(
        status=201,
        headers={"content-type": "application/json"},
        body=b'{"id": "ord_1"}',
    )
