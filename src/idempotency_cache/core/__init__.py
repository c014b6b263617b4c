"""Core replay/capture logic for the idempotency cache.

This package contains:
- Middleware: the per-request replay/capture state machine
- Capture: the response writer decorator that snapshots fresh responses
- Replay: response reconstruction from cached records
- Cleanup: removal of expired records

The core logic is framework-agnostic and is wrapped by adapters
for concrete web frameworks.
"""

from idempotency_cache.core.capture import CapturingResponseWriter, ResponseWriter
from idempotency_cache.core.cleanup import cleanup_expired_idempotency_entries
from idempotency_cache.core.middleware import IdempotencyMiddleware, Request
from idempotency_cache.core.replay import ReplayedResponse, replay_response

__all__ = [
    "CapturingResponseWriter",
    "IdempotencyMiddleware",
    "ReplayedResponse",
    "Request",
    "ResponseWriter",
    "cleanup_expired_idempotency_entries",
    "replay_response",
]
