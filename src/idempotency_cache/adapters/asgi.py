"""ASGI middleware adapter for FastAPI and Starlette applications.

This module wraps the framework-agnostic IdempotencyMiddleware so it can be
installed on any Starlette-based application.

The adapter:
1. Picks the policy bound to the request path (or the single configured one)
2. Converts the Starlette request into the internal Request format, reading
   the authenticated principal from ``request.state``
3. Runs the downstream app through a writer that rebuilds a Starlette
   Response, regenerating content-length for replays

Examples:
    FastAPI integration::

        from fastapi import FastAPI

        from idempotency_cache.adapters.asgi import ASGIIdempotencyMiddleware
        from idempotency_cache.config import IdempotencyConfig
        from idempotency_cache.policies import ORDERS_POLICY, PAYMENTS_POLICY
        from idempotency_cache.store import IdempotencyStore

        config = IdempotencyConfig.from_env()
        store = IdempotencyStore.from_config(config)

        app = FastAPI()
        app.add_middleware(
            ASGIIdempotencyMiddleware,
            store=store,
            config=config,
            policies={"/api/orders": ORDERS_POLICY, "/api/payments": PAYMENTS_POLICY},
        )

    The authentication layer must run before this middleware (be added after
    it) and set ``request.state.user``.
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response

from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.core.capture import ResponseWriter
from idempotency_cache.core.middleware import IdempotencyMiddleware, Request
from idempotency_cache.policies import IdempotencyPolicy, match_policy
from idempotency_cache.storage.base import StorageBackend
from idempotency_cache.store import IdempotencyStore

# Statuses whose responses carry no body and no content-length
BODILESS_STATUSES = {204, 304}


class StarletteResponseWriter:
    """ResponseWriter that materializes the emitted response.

    Attributes:
        response: The Starlette Response built from the first write.
    """

    def __init__(self) -> None:
        self.response: Response | None = None

    async def write(self, status: int, headers: Sequence[tuple[str, str]], body: bytes) -> None:
        if self.response is not None:
            return

        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers
            if name.lower() != "content-length"
        ]
        if status >= 200 and status not in BODILESS_STATUSES:
            raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

        response = Response(content=body, status_code=status)
        response.raw_headers = raw_headers
        self.response = response


async def read_body(response: Response) -> bytes:
    """Drain a downstream response body into bytes."""
    body_iterator = getattr(response, "body_iterator", None)
    if body_iterator is None:
        return bytes(response.body)

    body = b""
    async for chunk in body_iterator:
        if isinstance(chunk, str):
            body += chunk.encode(getattr(response, "charset", "utf-8"))
        else:
            body += bytes(chunk)
    return body


class ASGIIdempotencyMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for idempotent replay of mutating requests.

    Attributes:
        store: Idempotency store shared by all requests
        config: Configuration object
        middleware: Core middleware instance
        policy: Single policy applied to every path, if policies is not given
        policies: Path prefix to policy mapping; unmatched paths pass through
        principal_attr: Name of the request.state attribute holding the
            authenticated principal
    """

    def __init__(
        self,
        app: Any,
        store: IdempotencyStore | None = None,
        config: IdempotencyConfig | None = None,
        storage: StorageBackend | None = None,
        policy: IdempotencyPolicy | None = None,
        policies: Mapping[str, IdempotencyPolicy] | None = None,
        principal_attr: str = "user",
    ) -> None:
        """Initialize the ASGI middleware.

        Args:
            app: The ASGI application
            store: Idempotency store; built from storage or config if omitted
            config: Configuration object (uses defaults if not provided)
            storage: Storage backend to wrap when no store is given
            policy: Policy for every path (ignored when policies is given)
            policies: Path prefix to policy mapping (longest prefix wins)
            principal_attr: request.state attribute with the principal
        """
        super().__init__(app)
        self.config = config or IdempotencyConfig()
        if store is None:
            if storage is not None:
                store = IdempotencyStore(storage, timeout_seconds=self.config.storage_timeout_seconds)
            else:
                store = IdempotencyStore.from_config(self.config)
        self.store = store
        self.middleware = IdempotencyMiddleware(store, self.config)
        self.policy = policy
        self.policies = dict(policies) if policies is not None else None
        self.principal_attr = principal_attr

    def resolve_policy(self, path: str) -> IdempotencyPolicy | None:
        """Return the policy for path, or None when the path is unbound."""
        if self.policies is None:
            return self.policy or self.middleware.default_policy
        return match_policy(path, self.policies)

    async def dispatch(
        self,
        request: StarletteRequest,
        call_next: Callable[[StarletteRequest], Awaitable[Response]],
    ) -> Response:
        """Process a request with idempotency handling.

        Args:
            request: The Starlette request object
            call_next: Function to call the next middleware/handler

        Returns:
            Starlette Response object
        """
        policy = self.resolve_policy(request.url.path)
        if policy is None:
            return await call_next(request)

        internal_request = self._convert_request(request)
        if not self.middleware.is_eligible(internal_request, policy):
            return await call_next(request)

        async def handler(writer: ResponseWriter) -> None:
            response = await call_next(request)
            body = await read_body(response)
            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.raw_headers
            ]
            await writer.write(response.status_code, headers, body)

        writer = StarletteResponseWriter()
        await self.middleware.process(internal_request, writer, handler, policy)

        if writer.response is None:
            raise RuntimeError("Downstream application did not produce a response")
        return writer.response

    def _convert_request(self, request: StarletteRequest) -> Request:
        """Convert Starlette request to internal Request format."""
        return Request(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
            principal=getattr(request.state, self.principal_attr, None),
        )
