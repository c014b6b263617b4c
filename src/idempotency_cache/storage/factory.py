"""Startup-time selection of the storage backend.

The backend is chosen once from configuration and injected into the
IdempotencyStore; nothing downstream branches on which one is in use.
"""

from typing import Any

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import create_async_engine

from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.observability.logging import get_logger
from idempotency_cache.storage.base import StorageBackend
from idempotency_cache.storage.memory import MemoryStorageBackend
from idempotency_cache.storage.redis import RedisStorageBackend
from idempotency_cache.storage.sql import SQLStorageBackend

logger = get_logger(__name__)


def create_storage_backend(config: IdempotencyConfig, **engine_kwargs: Any) -> StorageBackend:
    """Build the storage backend named by the configuration.

    Args:
        config: Validated configuration.
        **engine_kwargs: Extra keyword arguments for ``create_async_engine``
            when the SQL fallback is selected.

    Returns:
        A ready-to-use storage backend. No connection is opened until the
        first request.
    """
    backend: StorageBackend
    if config.storage_backend == "redis":
        client = aioredis.from_url(config.redis_url, decode_responses=True)
        backend = RedisStorageBackend(client)
    elif config.storage_backend == "sql":
        engine = create_async_engine(config.database_url, **engine_kwargs)
        backend = SQLStorageBackend(engine, cleanup_probability=config.cleanup_probability)
    else:
        backend = MemoryStorageBackend()

    logger.info("storage.selected", backend=config.storage_backend)
    return backend
