"""Header filtering and lookup utilities for the idempotency cache.

This module provides functions for:
- Filtering volatile headers out of captured responses
- Adding the replay marker header
- Case-insensitive header lookup
"""

from collections.abc import Iterable, Mapping

# Headers that must never be stored; the transport regenerates them on replay
VOLATILE_HEADERS = {
    "content-length",
    "date",
    "server",
    "connection",
    "transfer-encoding",
    "keep-alive",
    "trailer",
    "upgrade",
    "proxy-connection",
    "proxy-authenticate",
    "proxy-authorization",
}

# Optional headers that may be removed (configurable)
OPTIONAL_VOLATILE_HEADERS = {
    "set-cookie",
    "age",
    "expires",
    "etag",
    "last-modified",
}

HeaderPairs = Iterable[tuple[str, str]]

# A stored header value; repeated headers such as Set-Cookie keep every value
HeaderValue = str | list[str]


def filter_response_headers(
    headers: Mapping[str, str] | HeaderPairs,
    remove_cookies: bool = False,
    additional_volatile: list[str] | None = None,
) -> dict[str, HeaderValue]:
    """Snapshot response headers without the volatile ones.

    Names are lower-cased. A header that appears more than once is stored as
    the list of its values, in order.

    Args:
        headers: Response headers as a mapping or as (name, value) pairs
        remove_cookies: If True, remove Set-Cookie and cache validators too
        additional_volatile: Additional header names to remove (case-insensitive)

    Returns:
        Filtered headers dictionary

    Example:
        >>> filter_response_headers({
        ...     "Content-Type": "application/json",
        ...     "Content-Length": "17",
        ...     "Date": "Mon, 01 Oct 2025 12:00:00 GMT",
        ... })
        {'content-type': 'application/json'}
    """
    headers_to_remove = VOLATILE_HEADERS.copy()

    if remove_cookies:
        headers_to_remove.update(OPTIONAL_VOLATILE_HEADERS)

    if additional_volatile:
        headers_to_remove.update(h.lower() for h in additional_volatile)

    pairs = headers.items() if isinstance(headers, Mapping) else headers
    filtered: dict[str, HeaderValue] = {}
    for name, value in pairs:
        name = name.lower()
        if name in headers_to_remove:
            continue
        existing = filtered.get(name)
        if existing is None:
            filtered[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            filtered[name] = [existing, value]
    return filtered


def add_replay_header(
    headers: Mapping[str, HeaderValue],
    header_name: str = "Idempotency-Replay",
) -> list[tuple[str, str]]:
    """Return header pairs for a replayed response, marker included.

    List values expand into one pair per value.

    Example:
        >>> add_replay_header({"content-type": "application/json"})
        [('content-type', 'application/json'), ('idempotency-replay', 'true')]
    """
    marker = header_name.lower()
    pairs = []
    for name, value in headers.items():
        if name.lower() == marker:
            continue
        values = value if isinstance(value, list) else [value]
        pairs.extend((name, item) for item in values)
    pairs.append((marker, "true"))
    return pairs


def get_header_value(
    headers: Mapping[str, str] | HeaderPairs,
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Example:
        >>> get_header_value({"Idempotency-Key": "abc"}, "idempotency-key")
        'abc'
        >>> get_header_value({}, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()
    pairs = headers.items() if isinstance(headers, Mapping) else headers

    for key, value in pairs:
        if key.lower() == header_name_lower:
            return value

    return default
