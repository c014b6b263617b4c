"""Custom exceptions for the idempotency cache.

This module defines the exception hierarchy used throughout the package to
signal client contract violations, storage failures and malformed cached
records.

Only :class:`InvalidIdempotencyKeyError` is ever surfaced to the HTTP client.
Storage and serialization failures are absorbed by the idempotency store and
the middleware, which then proceed without idempotency protection.

Examples:
    Handling a storage error::

        from idempotency_cache.exceptions import StorageError

        try:
            raw = await backend.get(key)
        except StorageError as e:
            logger.error("storage.read_failed", error=str(e))
            raw = None
"""


class IdempotencyError(Exception):
    """Base exception for all idempotency-related errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class InvalidIdempotencyKeyError(IdempotencyError):
    """The client supplied an idempotency key with an unacceptable format.

    Valid keys are RFC-4122 UUIDs or 8-64 characters drawn from
    ``[A-Za-z0-9_-]``. The middleware turns this error into a 400 response
    before any lookup and before the downstream handler runs.

    Attributes:
        message: Human-readable error description.
        key: The rejected key as received.
        code: Machine-readable error code returned to the client.
    """

    code = "INVALID_IDEMPOTENCY_KEY"
    default_message = "Idempotency-Key must be a valid UUID or similar unique identifier"

    def __init__(self, key: str, message: str | None = None) -> None:
        """Initialize the error.

        Args:
            key: The rejected key as received.
            message: Optional override of the client-facing message.
        """
        super().__init__(message or self.default_message)
        self.key = key

    def to_dict(self) -> dict[str, object]:
        """Return the JSON error envelope sent to the client."""
        return {"success": False, "error": self.code, "message": self.message}


class StorageError(IdempotencyError):
    """Storage backend operation failed.

    Raised by backends when the underlying store cannot complete a read,
    write or cleanup, including when the call exceeds its time bound.
    Callers treat it as best-effort: a failed read means "no cached record",
    a failed write means the response is simply not cached.

    Attributes:
        message: Human-readable error description.
        operation: One of ``"read"``, ``"write"`` or ``"cleanup"``.
        cause: The underlying exception, if any.

    Examples:
        Wrapping a driver error::

            try:
                await self._redis.get(key)
            except RedisError as e:
                raise StorageError(
                    f"Failed to read {key} from Redis: {e}",
                    operation="read",
                    cause=e,
                ) from e
    """

    def __init__(
        self,
        message: str,
        operation: str = "read",
        cause: Exception | None = None,
    ) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            operation: The storage operation that failed.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class SerializationError(IdempotencyError):
    """A stored record could not be encoded or decoded.

    A malformed record found at read time is treated exactly like a storage
    read failure: the record is considered absent.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the serialization error.

        Args:
            message: Human-readable error description.
            cause: The underlying exception.
        """
        super().__init__(message)
        self.cause = cause
