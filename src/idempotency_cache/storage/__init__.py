"""Storage backends for the idempotency cache.

All backends implement the StorageBackend protocol defined in base.py.

Available Backends:
    - RedisStorageBackend: primary store with native key expiry
    - SQLStorageBackend: relational fallback with an expires_at column
    - MemoryStorageBackend: in-process store for development and tests
"""

from idempotency_cache.storage.base import StorageBackend
from idempotency_cache.storage.factory import create_storage_backend
from idempotency_cache.storage.memory import MemoryStorageBackend
from idempotency_cache.storage.redis import RedisStorageBackend
from idempotency_cache.storage.sql import SQLStorageBackend

__all__ = [
    "StorageBackend",
    "MemoryStorageBackend",
    "RedisStorageBackend",
    "SQLStorageBackend",
    "create_storage_backend",
]
