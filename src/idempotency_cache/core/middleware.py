"""Framework-agnostic replay/capture middleware.

This module holds the per-request state machine. It is framework-agnostic
and is wrapped by adapters for concrete web frameworks.

For each request the middleware:
1. Bypasses the cache if the method is not enabled or the policy skips it
2. Extracts the idempotency key; no key means no idempotency behavior
3. Validates the key format; an invalid key gets a 400 and nothing else runs
4. Looks up the caller-scoped cache key and replays a hit verbatim
5. On a miss, runs the handler through a capturing writer
6. Persists the captured response if its status is 2xx

Storage faults never block a request. If the lookup itself fails, the
handler runs without idempotency protection; if persistence fails, the live
response is still delivered. Exceptions raised by the handler propagate.

Concurrent requests carrying the same key can both miss and both run the
handler, since no reservation is taken before the handler executes. The
first successful write wins and later ones are dropped by the backend.

Examples:
    Using the middleware directly::

        from idempotency_cache.core.middleware import IdempotencyMiddleware, Request
        from idempotency_cache.store import IdempotencyStore
        from idempotency_cache.storage.memory import MemoryStorageBackend

        middleware = IdempotencyMiddleware(IdempotencyStore(MemoryStorageBackend()))

        async def handler(writer):
            await writer.write(201, [("content-type", "application/json")], b'{"id": "ord_1"}')

        await middleware.process(request, writer, handler, policy=ORDERS_POLICY)
"""

import json
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.core.capture import CapturingResponseWriter, ResponseWriter
from idempotency_cache.core.replay import replay_response
from idempotency_cache.exceptions import InvalidIdempotencyKeyError
from idempotency_cache.keys import (
    build_cache_key,
    redact_key,
    resolve_caller_id,
    validate_idempotency_key,
)
from idempotency_cache.observability.logging import get_logger
from idempotency_cache.observability.metrics import record_execution_time, record_request
from idempotency_cache.policies import IdempotencyPolicy, default_policy
from idempotency_cache.store import IdempotencyStore
from idempotency_cache.utils.headers import get_header_value

logger = get_logger(__name__)

Handler = Callable[[ResponseWriter], Awaitable[None]]


class Request:
    """Abstract request representation.

    Framework adapters convert their request objects into this format.
    The body is not needed: a replay depends only on the key and the caller.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: URL path
        headers: Request headers
        principal: Authenticated principal set upstream, or None
    """

    def __init__(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        principal: Any = None,
    ) -> None:
        self.method = method
        self.path = path
        self.headers = headers
        self.principal = principal


class IdempotencyMiddleware:
    """Replay/capture orchestrator.

    Attributes:
        store: Idempotency store, injected with its backend already chosen
        config: Configuration object
    """

    def __init__(self, store: IdempotencyStore, config: IdempotencyConfig | None = None) -> None:
        self.store = store
        self.config = config or IdempotencyConfig()
        self._enabled_methods = set(self.config.enabled_methods)
        self.default_policy = default_policy(self.config.default_ttl_seconds)

    def is_eligible(self, request: Request, policy: IdempotencyPolicy) -> bool:
        """Return True if the request may be replayed or captured."""
        if request.method.upper() not in self._enabled_methods:
            return False
        return not policy.should_skip(request)

    def extract_key(self, request: Request) -> str | None:
        """Return the idempotency key header value, None if absent or empty."""
        value = get_header_value(request.headers, self.config.header_name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def cache_key_for(self, request: Request, token: str) -> str:
        """Compose the caller-scoped cache key for a token."""
        caller_id = resolve_caller_id(request.principal, self.config.anonymous_caller_id)
        return build_cache_key(self.config.key_prefix, caller_id, token)

    async def process(
        self,
        request: Request,
        writer: ResponseWriter,
        handler: Handler,
        policy: IdempotencyPolicy | None = None,
    ) -> None:
        """Process a request with idempotency handling.

        Args:
            request: The incoming request
            writer: The real response writer
            handler: Downstream handler; emits exactly one response via the
                writer it is given
            policy: Endpoint-class policy; defaults to the configured TTL and
                no skip rule
        """
        policy = policy or self.default_policy

        if not self.is_eligible(request, policy):
            await handler(writer)
            return

        token = self.extract_key(request)
        if token is None:
            await handler(writer)
            return

        if not validate_idempotency_key(token):
            await self._reject_invalid_key(writer, InvalidIdempotencyKeyError(token), policy)
            return

        try:
            cache_key = self.cache_key_for(request, token)
            cached = await self.store.get_cached_response(cache_key)
        except Exception as e:
            logger.error(
                "idempotency.fail_open",
                stage="lookup",
                policy=policy.name,
                idempotency_key=redact_key(token),
                error=str(e),
                error_type=type(e).__name__,
            )
            capture = CapturingResponseWriter(writer)
            await handler(capture)
            record_request("fail_open", capture.status_code)
            return

        if cached is not None:
            replayed = replay_response(cached, self.config.replay_header_name)
            await writer.write(replayed.status, replayed.headers, replayed.body)
            record_request("replay", replayed.status)
            logger.info(
                "idempotency.replay",
                policy=policy.name,
                cache_key=redact_key(cache_key),
                status_code=replayed.status,
            )
            return

        capture = CapturingResponseWriter(writer)
        start_time = time.perf_counter()
        await handler(capture)
        execution_time_ms = int((time.perf_counter() - start_time) * 1000)

        record_request("new", capture.status_code)
        record_execution_time(execution_time_ms)

        captured = capture.captured
        if captured is None or not captured.is_success:
            logger.info(
                "idempotency.not_cached",
                policy=policy.name,
                cache_key=redact_key(cache_key),
                status_code=capture.status_code,
            )
            return

        try:
            stored = await self.store.store_cached_response(
                cache_key,
                captured.to_cached_response(),
                policy.ttl_seconds,
            )
        except Exception as e:
            logger.error(
                "idempotency.fail_open",
                stage="persist",
                policy=policy.name,
                cache_key=redact_key(cache_key),
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        if stored:
            logger.info(
                "idempotency.stored",
                policy=policy.name,
                cache_key=redact_key(cache_key),
                status_code=captured.status,
                ttl_seconds=policy.ttl_seconds,
                execution_time_ms=execution_time_ms,
            )

    async def _reject_invalid_key(
        self,
        writer: ResponseWriter,
        error: InvalidIdempotencyKeyError,
        policy: IdempotencyPolicy,
    ) -> None:
        body = json.dumps(error.to_dict()).encode("utf-8")
        await writer.write(400, [("content-type", "application/json")], body)
        record_request("invalid_key", 400)
        logger.info("idempotency.invalid_key", policy=policy.name, key_length=len(error.key))
