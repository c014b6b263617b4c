"""In-memory storage backend with explicit expiry bookkeeping.

This module provides a process-local implementation of the StorageBackend
interface. Entries live in a dictionary alongside their expiry time.

The MemoryStorageBackend is suitable for:
    - Single-process applications
    - Development and testing

It gives no cross-process guarantees. Use the Redis primary store or the
SQL fallback when more than one worker serves requests.

Examples:
    Basic usage::

        from idempotency_cache.storage.memory import MemoryStorageBackend

        backend = MemoryStorageBackend()
        await backend.put("idempotency:42:order-retry-001", raw, ttl_seconds=3600)
        assert await backend.get("idempotency:42:order-retry-001") == raw

    Deterministic expiry in tests::

        now = datetime(2024, 1, 1, tzinfo=UTC)
        backend = MemoryStorageBackend(clock=lambda: now)
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from idempotency_cache.models import utcnow


class MemoryStorageBackend:
    """In-memory storage backend.

    Attributes:
        _store: Dictionary mapping keys to (serialized record, expires_at).
        _clock: Callable returning the current aware UTC datetime.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        """Initialize a new in-memory storage backend.

        Args:
            clock: Source of the current time; injectable for tests.
        """
        self._store: dict[str, tuple[str, datetime]] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        """Return the live serialized record for key, if any."""
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at <= self._clock():
            # Logically deleted; drop it now rather than wait for a sweep
            del self._store[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value for ttl_seconds unless a live entry already exists."""
        now = self._clock()
        existing = self._store.get(key)
        if existing is not None and existing[1] > now:
            return
        self._store[key] = (value, now + timedelta(seconds=ttl_seconds))

    async def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            The number of entries removed.
        """
        now = self._clock()
        expired_keys = [key for key, (_, expires_at) in self._store.items() if expires_at < now]

        for key in expired_keys:
            del self._store[key]

        return len(expired_keys)

    async def close(self) -> None:
        """Drop all entries."""
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
