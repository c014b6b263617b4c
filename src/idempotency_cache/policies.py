"""Policy presets binding TTL and skip rules to endpoint classes.

A policy is configuration only: the replay/capture logic is the same for
every endpoint class, only the TTL and the skip predicate differ.

=============  =======  ====================================
Preset         TTL      Skipped for
=============  =======  ====================================
orders         24h      administrators, GET
payments       48h      GET (financial writes always covered)
api            1h       administrators, GET
customers      2h       GET
=============  =======  ====================================

Examples:
    Binding presets to router groups by path prefix::

        app.add_middleware(
            ASGIIdempotencyMiddleware,
            store=store,
            policies={
                "/api/orders": ORDERS_POLICY,
                "/api/payments": PAYMENTS_POLICY,
                "/api/customers": CUSTOMERS_POLICY,
                "/api": GENERIC_API_POLICY,
            },
        )
"""

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from idempotency_cache.keys import principal_role

ADMIN_ROLE = "admin"

HOUR = 60 * 60


def never_skip(request: Any) -> bool:
    return False


def skip_get(request: Any) -> bool:
    """Skip read requests."""
    return request.method.upper() == "GET"


def is_admin(request: Any) -> bool:
    """Return True when the authenticated principal is an administrator."""
    return principal_role(request.principal) == ADMIN_ROLE


def skip_admin_or_get(request: Any) -> bool:
    """Skip read requests and anything issued by an administrator."""
    return skip_get(request) or is_admin(request)


class IdempotencyPolicy(BaseModel):
    """TTL and skip predicate for one endpoint class.

    Attributes:
        name: Preset name, used in logs.
        ttl_seconds: How long a captured response stays replayable.
        skip: Predicate over the request; True bypasses the cache entirely.
    """

    name: str = Field(..., min_length=1)
    ttl_seconds: int = Field(..., ge=1, le=604800)
    skip: Callable[[Any], bool] = Field(default=never_skip)

    model_config = {"frozen": True}

    def should_skip(self, request: Any) -> bool:
        return bool(self.skip(request))


ORDERS_POLICY = IdempotencyPolicy(name="orders", ttl_seconds=24 * HOUR, skip=skip_admin_or_get)
PAYMENTS_POLICY = IdempotencyPolicy(name="payments", ttl_seconds=48 * HOUR, skip=skip_get)
GENERIC_API_POLICY = IdempotencyPolicy(name="api", ttl_seconds=1 * HOUR, skip=skip_admin_or_get)
CUSTOMERS_POLICY = IdempotencyPolicy(name="customers", ttl_seconds=2 * HOUR, skip=skip_get)

POLICY_PRESETS: dict[str, IdempotencyPolicy] = {
    policy.name: policy
    for policy in (ORDERS_POLICY, PAYMENTS_POLICY, GENERIC_API_POLICY, CUSTOMERS_POLICY)
}


def get_policy(name: str) -> IdempotencyPolicy:
    """Look up a preset by name.

    Raises:
        KeyError: If no preset has that name.
    """
    try:
        return POLICY_PRESETS[name]
    except KeyError:
        raise KeyError(
            f"Unknown idempotency policy {name!r}; expected one of {sorted(POLICY_PRESETS)}"
        ) from None


def default_policy(ttl_seconds: int) -> IdempotencyPolicy:
    """Policy used when no endpoint class is bound: never skips."""
    return IdempotencyPolicy(name="default", ttl_seconds=ttl_seconds, skip=never_skip)


def match_policy(
    path: str,
    policies: Mapping[str, IdempotencyPolicy],
) -> IdempotencyPolicy | None:
    """Return the policy bound to the longest matching path prefix.

    A prefix matches the path itself and anything below it, so "/api/orders"
    matches "/api/orders" and "/api/orders/17" but not "/api/orders-archive".

    Examples:
        >>> match_policy("/api/orders/17", {"/api": GENERIC_API_POLICY,
        ...                                 "/api/orders": ORDERS_POLICY}).name
        'orders'
        >>> match_policy("/health", {"/api": GENERIC_API_POLICY}) is None
        True
    """
    best: tuple[int, IdempotencyPolicy] | None = None
    for prefix, policy in policies.items():
        normalized = prefix.rstrip("/")
        if normalized and path != normalized and not path.startswith(normalized + "/"):
            continue
        if best is None or len(normalized) > best[0]:
            best = (len(normalized), policy)
    return None if best is None else best[1]
