"""Response replay logic for the idempotency cache.

This module reconstructs HTTP responses from cached records. The replay:
1. Decodes the base64-encoded body
2. Re-applies each stored header, one pair per value for repeated headers
   (volatile headers were never stored)
3. Adds the replay marker header (Idempotency-Replay: true)

The transport regenerates content-length, date and server on emission.

Examples:
    Basic replay::

        from idempotency_cache.core.replay import replay_response

        response = replay_response(record)
        # response.status == 201
        # ("idempotency-replay", "true") in response.headers
"""

import base64
import binascii

from idempotency_cache.models import CachedResponse
from idempotency_cache.utils.headers import add_replay_header


class ReplayedResponse:
    """Represents a replayed HTTP response.

    Attributes:
        status: HTTP status code
        headers: Response headers as ordered (name, value) pairs
        body: Response body as bytes
    """

    def __init__(self, status: int, headers: list[tuple[str, str]], body: bytes) -> None:
        self.status = status
        self.headers = headers
        self.body = body


def replay_response(
    record: CachedResponse,
    replay_header_name: str = "Idempotency-Replay",
) -> ReplayedResponse:
    """Reconstruct an HTTP response from a cached record.

    Args:
        record: The cached response
        replay_header_name: Name of the marker header added to the response

    Returns:
        ReplayedResponse object with status, headers, and body

    Raises:
        ValueError: If the stored body is not valid base64

    Examples:
        >>> record = CachedResponse(
        ...     status=201,
        ...     headers={"content-type": "application/json"},
        ...     body_b64="eyJpZCI6ICJvcmRfMSJ9",
        ... )
        >>> response = replay_response(record)
        >>> response.status
        201
        >>> response.body
        b'{"id": "ord_1"}'
        >>> response.headers
        [('content-type', 'application/json'), ('idempotency-replay', 'true')]
    """
    try:
        body = base64.b64decode(record.body_b64)
    except binascii.Error as e:
        raise ValueError(f"Failed to decode response body: {e}") from e

    return ReplayedResponse(
        status=record.status,
        headers=add_replay_header(record.headers, replay_header_name),
        body=body,
    )
