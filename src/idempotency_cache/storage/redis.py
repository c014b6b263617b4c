"""Redis storage backend, the primary expiring store.

Expiry is delegated entirely to Redis: every write uses ``SET key value
EX ttl NX``, so the record disappears on its own once its TTL elapses and a
live record is never overwritten. No ``expires_at`` bookkeeping is needed.

Examples:
    Wiring a client at startup::

        import redis.asyncio as aioredis

        from idempotency_cache.storage.redis import RedisStorageBackend

        client = aioredis.from_url("redis://cache:6379/0", decode_responses=True)
        backend = RedisStorageBackend(client)
"""

from typing import Any

from redis.exceptions import RedisError

from idempotency_cache.exceptions import StorageError
from idempotency_cache.keys import redact_key
from idempotency_cache.observability.logging import get_logger
from idempotency_cache.observability.metrics import record_storage_error

logger = get_logger(__name__)


class RedisStorageBackend:
    """Storage backend on top of a ``redis.asyncio`` client.

    Attributes:
        _redis: The asyncio Redis client (or a compatible fake in tests).
    """

    def __init__(self, client: Any) -> None:
        """Initialize the backend.

        Args:
            client: A ``redis.asyncio.Redis`` instance. The caller owns its
                configuration; ``decode_responses`` may be on or off.
        """
        self._redis = client

    async def get(self, key: str) -> str | None:
        """Return the serialized record stored under key.

        Raises:
            StorageError: If Redis cannot be reached or errors.
        """
        try:
            raw = await self._redis.get(key)
        except (RedisError, OSError) as e:
            raise StorageError(
                f"Failed to read {redact_key(key)} from Redis: {e}",
                operation="read",
                cause=e,
            ) from e

        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value with a native TTL, keeping any live record."""
        try:
            await self._redis.set(key, value, ex=ttl_seconds, nx=True)
        except (RedisError, OSError) as e:
            record_storage_error("write")
            logger.warning(
                "storage.write_failed",
                backend="redis",
                cache_key=redact_key(key),
                error=str(e),
                error_type=type(e).__name__,
            )

    async def cleanup_expired(self) -> int:
        """Redis expires keys itself; nothing to sweep."""
        return 0

    async def close(self) -> None:
        """Close the underlying client."""
        await self._redis.aclose()
