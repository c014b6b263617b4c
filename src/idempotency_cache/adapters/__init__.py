"""Framework adapters for the idempotency cache.

- asgi.py: Starlette BaseHTTPMiddleware binding for FastAPI, Starlette, etc.

The adapters handle the conversion between framework-specific request and
response objects and the core middleware's internal representation.
"""

from idempotency_cache.adapters.asgi import ASGIIdempotencyMiddleware

__all__ = ["ASGIIdempotencyMiddleware"]
