"""Data model for cached responses.

A :class:`CachedResponse` is the record persisted after a downstream handler
completes with a 2xx status. It is immutable once written and is replayed
verbatim for every later request that carries the same cache key.

Examples:
    Creating a record from a captured response::

        from idempotency_cache.models import CachedResponse

        record = CachedResponse.from_body(
            status=201,
            headers={"content-type": "application/json"},
            body=b'{"id": "ord_1"}',
        )

    Round-tripping through storage::

        raw = record.model_dump_json()
        restored = CachedResponse.model_validate_json(raw)
        assert restored.get_body_bytes() == b'{"id": "ord_1"}'
"""

import base64
from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class CachedResponse(BaseModel):
    """A successful HTTP response cached for replay.

    The response body is base64-encoded to safely handle binary content
    and ensure consistent serialization across storage backends.

    Attributes:
        status: HTTP status code, always 2xx.
        headers: Response headers with lower-cased names, volatile headers
            (date, server, content-length, ...) already removed. A repeated
            header such as set-cookie holds the list of its values.
        body_b64: Base64-encoded response body.
        written_at: When the original request completed.
    """

    status: int = Field(
        ...,
        description="HTTP status code of the original response",
        ge=200,
        le=299,
        examples=[200, 201, 204],
    )
    headers: dict[str, str | list[str]] = Field(
        default_factory=dict,
        description="Non-volatile response headers",
        examples=[{"content-type": "application/json"}],
    )
    body_b64: str = Field(
        ...,
        description="Base64-encoded response body",
        examples=["eyJpZCI6ICJvcmRfMSJ9"],
    )
    written_at: datetime = Field(
        default_factory=utcnow,
        description="Timestamp of first successful completion",
    )

    model_config = {"frozen": True}

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        """Validate that the body is properly base64-encoded.

        Raises:
            ValueError: If the string is not valid base64.
        """
        try:
            base64.b64decode(v, validate=True)
        except Exception as e:
            raise ValueError(f"Invalid base64 encoding: {e}") from e
        return v

    @classmethod
    def from_body(
        cls,
        status: int,
        headers: dict[str, str | list[str]],
        body: bytes,
        written_at: datetime | None = None,
    ) -> "CachedResponse":
        """Build a record from raw response parts."""
        return cls(
            status=status,
            headers=headers,
            body_b64=base64.b64encode(body).decode("ascii"),
            written_at=written_at or utcnow(),
        )

    def get_body_bytes(self) -> bytes:
        """Decode and return the response body as bytes.

        Examples:
            >>> response = CachedResponse(status=200, headers={}, body_b64="SGVsbG8=")
            >>> response.get_body_bytes()
            b'Hello'
        """
        return base64.b64decode(self.body_b64)
