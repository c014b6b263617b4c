"""Idempotency store: serialization and failure isolation over a backend.

The store is the only component that knows how a CachedResponse is encoded
(pydantic JSON). It also bounds every backend call with a timeout and
absorbs storage and serialization faults, so callers only ever see "found",
"absent" or "not cached".
"""

import asyncio

from pydantic import ValidationError

from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.exceptions import SerializationError, StorageError
from idempotency_cache.keys import redact_key
from idempotency_cache.models import CachedResponse
from idempotency_cache.observability.logging import get_logger
from idempotency_cache.observability.metrics import record_storage_error
from idempotency_cache.storage.base import StorageBackend
from idempotency_cache.storage.factory import create_storage_backend

logger = get_logger(__name__)


def serialize_response(record: CachedResponse) -> str:
    """Encode a record for storage.

    Raises:
        SerializationError: If the record cannot be encoded.
    """
    try:
        return record.model_dump_json()
    except (ValueError, TypeError) as e:
        raise SerializationError(f"Failed to serialize cached response: {e}", cause=e) from e


def deserialize_response(raw: str) -> CachedResponse:
    """Decode a stored record.

    Raises:
        SerializationError: If the payload is not a valid record.
    """
    try:
        return CachedResponse.model_validate_json(raw)
    except ValidationError as e:
        raise SerializationError(f"Malformed cached response: {e}", cause=e) from e


class IdempotencyStore:
    """Fail-open cache of responses keyed by composite cache keys.

    Attributes:
        backend: The storage backend selected at startup.
        timeout_seconds: Bound on each backend call.
    """

    def __init__(self, backend: StorageBackend, timeout_seconds: float = 2.0) -> None:
        self.backend = backend
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: IdempotencyConfig) -> "IdempotencyStore":
        """Build a store around the backend named by the configuration."""
        return cls(create_storage_backend(config), timeout_seconds=config.storage_timeout_seconds)

    async def get_cached_response(self, cache_key: str) -> CachedResponse | None:
        """Return the cached response for cache_key, or None.

        Storage failures (including connection errors a backend lets
        through), timeouts and malformed records all yield None.
        """
        try:
            raw = await asyncio.wait_for(self.backend.get(cache_key), self.timeout_seconds)
        except asyncio.TimeoutError:
            record_storage_error("read")
            logger.warning(
                "storage.timeout",
                operation="read",
                cache_key=redact_key(cache_key),
                timeout_seconds=self.timeout_seconds,
            )
            return None
        except (StorageError, OSError) as e:
            record_storage_error("read")
            logger.warning(
                "storage.read_failed",
                cache_key=redact_key(cache_key),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if raw is None:
            return None

        try:
            return deserialize_response(raw)
        except SerializationError as e:
            record_storage_error("deserialize")
            logger.warning(
                "storage.deserialize_failed",
                cache_key=redact_key(cache_key),
                error=e.message,
            )
            return None

    async def store_cached_response(
        self,
        cache_key: str,
        record: CachedResponse,
        ttl_seconds: int,
    ) -> bool:
        """Persist record under cache_key for ttl_seconds.

        Returns:
            True if the write was handed to the backend without error.
            False if serialization failed, the write timed out or the
            backend could not be reached.
        """
        try:
            raw = serialize_response(record)
        except SerializationError as e:
            record_storage_error("write")
            logger.warning(
                "storage.write_failed",
                cache_key=redact_key(cache_key),
                error=e.message,
            )
            return False

        try:
            await asyncio.wait_for(
                self.backend.put(cache_key, raw, ttl_seconds),
                self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            record_storage_error("write")
            logger.warning(
                "storage.timeout",
                operation="write",
                cache_key=redact_key(cache_key),
                timeout_seconds=self.timeout_seconds,
            )
            return False
        except (StorageError, OSError) as e:
            record_storage_error("write")
            logger.warning(
                "storage.write_failed",
                cache_key=redact_key(cache_key),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        return True

    async def close(self) -> None:
        """Close the underlying backend."""
        await self.backend.close()
