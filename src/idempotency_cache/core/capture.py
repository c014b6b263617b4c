"""Response capture for the replay/capture middleware.

Downstream handlers emit their response through a :class:`ResponseWriter`.
On a cache miss the middleware hands the handler a
:class:`CapturingResponseWriter` instead of the real writer. The wrapper
snapshots the first response written through it and forwards every write
to the real writer unchanged, so the caller sees the live response exactly
as the handler produced it.

Examples:
    Wrapping a writer::

        capture = CapturingResponseWriter(writer)
        await handler(capture)

        if capture.captured is not None and capture.captured.is_success:
            record = capture.captured.to_cached_response()
"""

from collections.abc import Sequence
from typing import Protocol

from idempotency_cache.models import CachedResponse
from idempotency_cache.observability.logging import get_logger
from idempotency_cache.utils.headers import HeaderValue, filter_response_headers

logger = get_logger(__name__)


class ResponseWriter(Protocol):
    """The response-emission primitive handed to downstream handlers."""

    async def write(self, status: int, headers: Sequence[tuple[str, str]], body: bytes) -> None:
        """Emit a complete response.

        Args:
            status: HTTP status code.
            headers: Ordered (name, value) pairs; names may repeat.
            body: Complete response body.
        """
        ...


class CapturedResponse:
    """Snapshot of a response taken as it was written.

    Attributes:
        status: HTTP status code.
        headers: Lower-cased, volatile-free header mapping; repeated
            headers map to a list of values.
        body: Response body as bytes.
    """

    def __init__(self, status: int, headers: dict[str, HeaderValue], body: bytes) -> None:
        self.status = status
        self.headers = headers
        self.body = body

    @property
    def is_success(self) -> bool:
        """Only 2xx responses may be cached."""
        return 200 <= self.status <= 299

    def to_cached_response(self) -> CachedResponse:
        """Convert to the persisted record.

        Raises:
            ValueError: If the status is not 2xx.
        """
        if not self.is_success:
            raise ValueError(f"Only 2xx responses can be cached, got {self.status}")
        return CachedResponse.from_body(status=self.status, headers=self.headers, body=self.body)


class CapturingResponseWriter:
    """Writer decorator that records the first response it forwards.

    Attributes:
        inner: The real writer.
        captured: Snapshot of the first response, or None before any write.
        writes: Number of writes forwarded.
    """

    def __init__(
        self,
        inner: ResponseWriter,
        additional_volatile: list[str] | None = None,
    ) -> None:
        """Wrap a writer.

        Args:
            inner: The real writer every call is forwarded to.
            additional_volatile: Extra header names to leave out of the snapshot.
        """
        self.inner = inner
        self.captured: CapturedResponse | None = None
        self.writes = 0
        self._additional_volatile = additional_volatile

    async def write(self, status: int, headers: Sequence[tuple[str, str]], body: bytes) -> None:
        """Snapshot the first response, then forward to the real writer."""
        if self.captured is None:
            self.captured = CapturedResponse(
                status=status,
                headers=filter_response_headers(
                    list(headers),
                    additional_volatile=self._additional_volatile,
                ),
                body=bytes(body),
            )
        else:
            logger.warning("capture.extra_write_ignored", status_code=status)

        self.writes += 1
        await self.inner.write(status, headers, body)

    @property
    def status_code(self) -> int:
        """Status of the captured response, 0 if nothing was written."""
        return self.captured.status if self.captured is not None else 0
