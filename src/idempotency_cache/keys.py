"""Idempotency key validation and cache key composition.

A client-supplied key is accepted in one of two shapes:

1. A hyphenated RFC-4122 UUID (version nibble 1-5, variant nibble 8, 9, a
   or b, case-insensitive).
2. A plain token of 8 to 64 characters drawn from ``[A-Za-z0-9_-]``.

The storage key is never the raw token. It is scoped by the caller so two
principals presenting the same token never see each other's responses::

    <prefix>:<caller id>:<token>
"""

import re
from collections.abc import Mapping
from typing import Any

ANONYMOUS_CALLER_ID = "anonymous"

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)
PLAIN_KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]{8,64}")


def is_uuid_key(token: str) -> bool:
    """Return True if the token is a canonical hyphenated UUID."""
    return UUID_PATTERN.fullmatch(token) is not None


def validate_idempotency_key(token: str) -> bool:
    """Check whether an idempotency key has an acceptable format.

    Args:
        token: The raw header value.

    Returns:
        True for UUIDs and plain 8-64 character tokens, False otherwise.

    Examples:
        >>> validate_idempotency_key("550e8400-e29b-41d4-a716-446655440000")
        True
        >>> validate_idempotency_key("order-retry-001")
        True
        >>> validate_idempotency_key("ab")
        False
        >>> validate_idempotency_key("semi colon;drop")
        False
    """
    if not isinstance(token, str):
        return False
    return is_uuid_key(token) or PLAIN_KEY_PATTERN.fullmatch(token) is not None


def _principal_value(principal: Any, name: str) -> Any:
    if isinstance(principal, Mapping):
        return principal.get(name)
    return getattr(principal, name, None)


def resolve_caller_id(principal: Any, anonymous: str = ANONYMOUS_CALLER_ID) -> str:
    """Derive the caller id embedded in cache keys.

    Args:
        principal: The authenticated principal placed on the request by an
            upstream authentication layer. May be a mapping or object with an
            ``id``, a bare string/int identifier, or None.
        anonymous: Sentinel used when there is no identifiable principal.

    Returns:
        The caller id as a string.

    Examples:
        >>> resolve_caller_id({"id": 42, "role": "cashier"})
        '42'
        >>> resolve_caller_id(None)
        'anonymous'
    """
    if principal is None:
        return anonymous
    if isinstance(principal, (str, int)):
        value: Any = principal
    else:
        value = _principal_value(principal, "id")
    if value is None or value == "":
        return anonymous
    return str(value)


def principal_role(principal: Any) -> str | None:
    """Return the principal's role, if it carries one."""
    if principal is None or isinstance(principal, (str, int)):
        return None
    role = _principal_value(principal, "role")
    return str(role) if role is not None else None


def build_cache_key(prefix: str, caller_id: str, token: str) -> str:
    """Compose the storage key for a caller's idempotency token.

    Examples:
        >>> build_cache_key("idempotency", "42", "order-retry-001")
        'idempotency:42:order-retry-001'
    """
    return f"{prefix}:{caller_id}:{token}"


def redact_key(cache_key: str, visible: int = 6) -> str:
    """Shorten the token segment of a cache key (or a bare token) for logging."""
    head, sep, token = cache_key.rpartition(":")
    if len(token) <= visible:
        return cache_key
    return f"{head}{sep}{token[:visible]}..."
