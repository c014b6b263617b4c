"""Relational fallback storage backend.

Records live in a single table, created on first use if absent::

    idempotency_cache(
      key TEXT PRIMARY KEY,
      response_data TEXT NOT NULL,   -- serialized CachedResponse
      created_at TEXT DEFAULT CURRENT_TIMESTAMP,
      expires_at TEXT NOT NULL
    )

Timestamps are stored as ``YYYY-MM-DD HH:MM:SS.ffffff`` UTC text. The
fixed-width format compares correctly as strings and keeps sub-second TTL
boundaries exact.

Expiry is explicit:

- get() only returns rows with ``expires_at > now``, so an expired row is
  logically absent before anyone sweeps it.
- put() upserts by primary key. An existing row is only replaced once it has
  expired, so a live record is never overwritten.
- On a small random fraction of writes (1% by default), put() also deletes
  every row with ``expires_at < now``.
- cleanup_expired() performs the same sweep on demand, for a scheduler.

Examples:
    Wiring an engine at startup::

        from sqlalchemy.ext.asyncio import create_async_engine

        from idempotency_cache.storage.sql import SQLStorageBackend

        engine = create_async_engine("sqlite+aiosqlite:///./idempotency.db")
        backend = SQLStorageBackend(engine)
"""

import random
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from idempotency_cache.exceptions import StorageError
from idempotency_cache.keys import redact_key
from idempotency_cache.models import utcnow
from idempotency_cache.observability.logging import get_logger
from idempotency_cache.observability.metrics import record_storage_error

logger = get_logger(__name__)

TABLE_NAME = "idempotency_cache"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

# Driver errors raised outside SQLAlchemy, e.g. a refused connection
BACKEND_ERRORS = (SQLAlchemyError, OSError)

CREATE_TABLE_SQL = text(
    f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
    "key TEXT PRIMARY KEY, "
    "response_data TEXT NOT NULL, "
    "created_at TEXT DEFAULT CURRENT_TIMESTAMP, "
    "expires_at TEXT NOT NULL"
    ")"
)
CREATE_INDEX_SQL = text(
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_expires_at ON {TABLE_NAME} (expires_at)"
)
SELECT_SQL = text(
    f"SELECT response_data FROM {TABLE_NAME} WHERE key = :key AND expires_at > :now"
)
UPSERT_SQL = text(
    f"INSERT INTO {TABLE_NAME} (key, response_data, created_at, expires_at) "
    "VALUES (:key, :response_data, :now, :expires_at) "
    "ON CONFLICT (key) DO UPDATE SET "
    "response_data = excluded.response_data, "
    "created_at = excluded.created_at, "
    "expires_at = excluded.expires_at "
    f"WHERE {TABLE_NAME}.expires_at <= :now"
)
DELETE_EXPIRED_SQL = text(f"DELETE FROM {TABLE_NAME} WHERE expires_at < :now")


def format_timestamp(value: datetime) -> str:
    """Render a datetime as the UTC text stored in the table."""
    return value.strftime(TIMESTAMP_FORMAT)


class SQLStorageBackend:
    """Storage backend on an SQLAlchemy async engine.

    Attributes:
        _engine: The async engine; any dialect supporting
            ``INSERT ... ON CONFLICT`` (SQLite, PostgreSQL) works.
        _cleanup_probability: Fraction of writes that also sweep.
        _rng: Random source for the sweep decision.
        _clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        cleanup_probability: float = 0.01,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            engine: SQLAlchemy async engine.
            cleanup_probability: Fraction of writes (0.0-1.0) that also sweep
                expired rows.
            clock: Source of the current time; injectable for tests.
            rng: Random source; injectable for tests.
        """
        if not 0.0 <= cleanup_probability <= 1.0:
            raise ValueError(f"cleanup_probability must be in [0, 1], got {cleanup_probability}")
        self._engine = engine
        self._cleanup_probability = cleanup_probability
        self._clock = clock
        self._rng = rng or random.Random()
        self._schema_ready = False

    async def _ensure_schema(self, conn: AsyncConnection) -> None:
        # The flag is only set once the enclosing transaction has committed
        if self._schema_ready:
            return
        await conn.execute(CREATE_TABLE_SQL)
        await conn.execute(CREATE_INDEX_SQL)

    async def get(self, key: str) -> str | None:
        """Return the unexpired serialized record for key.

        Raises:
            StorageError: If the database cannot be queried.
        """
        now = format_timestamp(self._clock())
        try:
            async with self._engine.begin() as conn:
                await self._ensure_schema(conn)
                result = await conn.execute(SELECT_SQL, {"key": key, "now": now})
                row = result.first()
        except BACKEND_ERRORS as e:
            raise StorageError(
                f"Failed to read {redact_key(key)} from {TABLE_NAME}: {e}",
                operation="read",
                cause=e,
            ) from e

        self._schema_ready = True
        return None if row is None else row[0]

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Upsert value with an explicit expires_at; failures are swallowed."""
        current = self._clock()
        now = format_timestamp(current)
        params = {
            "key": key,
            "response_data": value,
            "now": now,
            "expires_at": format_timestamp(current + timedelta(seconds=ttl_seconds)),
        }
        sweep = self._rng.random() < self._cleanup_probability

        try:
            async with self._engine.begin() as conn:
                await self._ensure_schema(conn)
                await conn.execute(UPSERT_SQL, params)
                if sweep:
                    result = await conn.execute(DELETE_EXPIRED_SQL, {"now": now})
                    logger.debug("storage.swept", backend="sql", records_removed=result.rowcount)
        except BACKEND_ERRORS as e:
            record_storage_error("write")
            logger.warning(
                "storage.write_failed",
                backend="sql",
                cache_key=redact_key(key),
                error=str(e),
                error_type=type(e).__name__,
            )
        else:
            self._schema_ready = True

    async def cleanup_expired(self) -> int:
        """Delete every row whose expires_at has passed.

        Returns:
            The number of rows removed.

        Raises:
            StorageError: If the delete fails.
        """
        now = format_timestamp(self._clock())
        try:
            async with self._engine.begin() as conn:
                await self._ensure_schema(conn)
                result = await conn.execute(DELETE_EXPIRED_SQL, {"now": now})
        except BACKEND_ERRORS as e:
            raise StorageError(
                f"Failed to sweep {TABLE_NAME}: {e}",
                operation="cleanup",
                cause=e,
            ) from e

        self._schema_ready = True
        return max(result.rowcount or 0, 0)

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()
