"""Utility modules for the idempotency cache."""

from .headers import (
    VOLATILE_HEADERS,
    add_replay_header,
    filter_response_headers,
    get_header_value,
)

__all__ = [
    "filter_response_headers",
    "add_replay_header",
    "get_header_value",
    "VOLATILE_HEADERS",
]
