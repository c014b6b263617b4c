"""TTL-based cleanup of expired idempotency records.

Expired records are already invisible to lookups; cleanup only reclaims
space in the relational fallback. Two entry points are provided:

1. :func:`cleanup_expired_idempotency_entries`, a one-shot call meant for an
   external scheduler (cron, a periodic job runner). It never raises.
2. :func:`start_cleanup_task` / :func:`stop_cleanup_task`, an in-process
   asyncio loop calling the same routine at a fixed interval.

For the Redis primary store both are no-ops returning 0.

Examples:
    From a scheduler::

        removed = await cleanup_expired_idempotency_entries(store.backend)

    Integrate with a FastAPI lifespan::

        @asynccontextmanager
        async def lifespan(app):
            task = await start_cleanup_task(store.backend, interval_seconds=300)
            yield
            await stop_cleanup_task(task)
"""

import asyncio

from idempotency_cache.observability.logging import get_logger
from idempotency_cache.observability.metrics import record_cleanup, record_storage_error
from idempotency_cache.storage.base import StorageBackend

logger = get_logger(__name__)


async def cleanup_expired_idempotency_entries(storage: StorageBackend) -> int:
    """Delete expired records and report how many were removed.

    Args:
        storage: The storage backend to sweep

    Returns:
        The number of records removed, or 0 if the sweep failed
    """
    try:
        count = await storage.cleanup_expired()
    except Exception as e:
        record_storage_error("cleanup")
        logger.error(
            "cleanup.failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return 0

    record_cleanup(count)
    if count > 0:
        logger.info("cleanup.completed", records_removed=count)
    else:
        logger.debug("cleanup.completed", records_removed=0)
    return count


async def cleanup_loop(
    storage: StorageBackend,
    interval_seconds: int = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Periodically clean up expired records until stop_event is set.

    Args:
        storage: Storage backend to clean up
        interval_seconds: Time between cleanup runs (default 300s = 5 minutes)
        stop_event: Event to signal the loop to stop (optional)
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info("cleanup.started", interval_seconds=interval_seconds)

    while not stop_event.is_set():
        await cleanup_expired_idempotency_entries(storage)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("cleanup.stopped")


async def start_cleanup_task(
    storage: StorageBackend,
    interval_seconds: int = 300,
) -> asyncio.Task[None]:
    """Start the cleanup loop as a background task.

    Args:
        storage: Storage backend to clean up
        interval_seconds: Time between cleanup runs

    Returns:
        The asyncio Task running the cleanup loop
    """
    stop_event = asyncio.Event()

    task = asyncio.create_task(
        cleanup_loop(
            storage=storage,
            interval_seconds=interval_seconds,
            stop_event=stop_event,
        )
    )

    task._stop_event = stop_event  # type: ignore[attr-defined]

    return task


async def stop_cleanup_task(task: asyncio.Task[None]) -> None:
    """Stop a running cleanup task gracefully.

    Args:
        task: The cleanup task returned from start_cleanup_task
    """
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)

    if stop_event:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("cleanup.stop_timeout", message="Cleanup task did not stop in time")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("cleanup.cancelled")
