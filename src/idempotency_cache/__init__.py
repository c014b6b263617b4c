"""
Idempotent-request cache for Python web applications.

Mutating requests that carry an ``Idempotency-Key`` header are executed once
per caller and key; retries within the TTL receive the original response
verbatim instead of repeating the side effect.
"""

__version__ = "0.1.0"

from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.core.cleanup import cleanup_expired_idempotency_entries
from idempotency_cache.core.middleware import IdempotencyMiddleware
from idempotency_cache.exceptions import (
    IdempotencyError,
    InvalidIdempotencyKeyError,
    SerializationError,
    StorageError,
)
from idempotency_cache.keys import validate_idempotency_key
from idempotency_cache.models import CachedResponse
from idempotency_cache.policies import (
    CUSTOMERS_POLICY,
    GENERIC_API_POLICY,
    ORDERS_POLICY,
    PAYMENTS_POLICY,
    IdempotencyPolicy,
)
from idempotency_cache.store import IdempotencyStore

__all__ = [
    "__version__",
    "CUSTOMERS_POLICY",
    "CachedResponse",
    "GENERIC_API_POLICY",
    "IdempotencyConfig",
    "IdempotencyError",
    "IdempotencyMiddleware",
    "IdempotencyPolicy",
    "IdempotencyStore",
    "InvalidIdempotencyKeyError",
    "ORDERS_POLICY",
    "PAYMENTS_POLICY",
    "SerializationError",
    "StorageError",
    "cleanup_expired_idempotency_entries",
    "validate_idempotency_key",
]
