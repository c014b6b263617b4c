"""Storage backend protocol for the idempotency cache.

This module defines the narrow interface that every storage backend
implements. Backends move opaque serialized records; encoding and decoding
of :class:`~idempotency_cache.models.CachedResponse` happens one layer up,
in :class:`~idempotency_cache.store.IdempotencyStore`.

Two production implementations exist:

- :class:`~idempotency_cache.storage.redis.RedisStorageBackend`, the fast
  primary store, which relies on native key expiry.
- :class:`~idempotency_cache.storage.sql.SQLStorageBackend`, the relational
  fallback, which keeps an explicit ``expires_at`` column and sweeps it.

An in-process :class:`~idempotency_cache.storage.memory.MemoryStorageBackend`
is provided for development and tests. The backend is chosen once at startup
(see :mod:`idempotency_cache.storage.factory`) and injected into the store.

Contract:
    1. **Logical expiry**: get() must return None for an entry whose TTL has
       elapsed, even if it is still physically present.

    2. **Write once**: put() must not replace a live (unexpired) entry. The
       first successful write for a key wins until it expires.

    3. **Best-effort writes**: put() never raises. Failures are logged and
       swallowed; the only consequence is that the response is not cached.

    4. **Reads may fail loudly**: get() raises StorageError on backend
       failure. The store treats that as "no cached record".

    5. **No reservation**: the interface deliberately has no lock or
       insert-if-absent placeholder. Two concurrent first requests for the
       same key can both miss and both execute.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol defining the interface for idempotency storage backends.

    All methods are async and must be safe to call concurrently from
    independent requests. Isolation between callers is provided purely by
    the composition of the keys passed in.
    """

    async def get(self, key: str) -> str | None:
        """Return the serialized record stored under key.

        Args:
            key: The composite cache key.

        Returns:
            The serialized record, or None if absent or logically expired.

        Raises:
            StorageError: If the backend cannot be read.
        """
        ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a serialized record for ttl_seconds, unless one is live.

        Args:
            key: The composite cache key.
            value: The serialized record.
            ttl_seconds: Time-to-live in seconds.
        """
        ...

    async def cleanup_expired(self) -> int:
        """Physically remove expired entries.

        Returns:
            The number of entries removed. Backends with native expiry
            return 0.

        Raises:
            StorageError: If the backend cannot be swept.
        """
        ...

    async def close(self) -> None:
        """Release connections held by the backend."""
        ...
