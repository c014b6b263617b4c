"""Scenario 4: TTL Expiry

Cached responses are replayable only for their policy's TTL:
- Orders are remembered 24h, payments 48h, customers 2h, generic API 1h
- A retry after the TTL executes the handler again and caches the new result
- Cleanup reclaims expired records without affecting live ones
"""

import asyncio
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from demo_app import create_app
from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.core.cleanup import cleanup_expired_idempotency_entries
from idempotency_cache.storage.memory import MemoryStorageBackend
from idempotency_cache.store import IdempotencyStore

HOUR = 3600
USER = {"X-User-Id": "cashier-7"}


@pytest.fixture
def backend(clock) -> MemoryStorageBackend:
    return MemoryStorageBackend(clock=clock)


@pytest.fixture
def app(backend: MemoryStorageBackend):
    return create_app(
        store=IdempotencyStore(backend),
        config=IdempotencyConfig(storage_backend="memory"),
    )


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def send(client: TestClient, path: str, body: dict, key: str):
    return client.post(path, json=body, headers={**USER, "Idempotency-Key": key})


@pytest.mark.parametrize(
    "path,body,calls_key,ttl",
    [
        ("/api/orders", {"item": "X", "qty": 1}, "orders", 24 * HOUR),
        ("/api/payments", {"order_id": "ord_1", "amount": 100}, "payments", 48 * HOUR),
        ("/api/customers", {"name": "Alice"}, "customers", 2 * HOUR),
    ],
)
def test_policy_ttl_boundary(client, app, clock, path, body, calls_key, ttl) -> None:
    key = f"ttl-check-{calls_key}"
    first = send(client, path, body, key)

    clock.advance(ttl - 1)
    before_expiry = send(client, path, body, key)
    assert before_expiry.headers["idempotency-replay"] == "true"
    assert before_expiry.json() == first.json()
    assert app.state.calls[calls_key] == 1

    clock.advance(1)
    after_expiry = send(client, path, body, key)
    assert "idempotency-replay" not in after_expiry.headers
    assert after_expiry.json()["id"] != first.json()["id"]
    assert app.state.calls[calls_key] == 2


def test_generic_api_ttl_is_one_hour(client, app, clock) -> None:
    headers = {**USER, "Idempotency-Key": "product-update-01"}

    client.put("/api/products/p1", json={"price": 100}, headers=headers)
    clock.advance(HOUR)
    response = client.put("/api/products/p1", json={"price": 200}, headers=headers)

    assert response.json()["price"] == 200
    assert app.state.calls["products"] == 2


def test_new_result_is_cached_after_expiry(client, app, clock) -> None:
    send(client, "/api/customers", {"name": "Alice"}, "customer-key-01")
    clock.advance(2 * HOUR)

    renewed = send(client, "/api/customers", {"name": "Alice v2"}, "customer-key-01")
    retry = send(client, "/api/customers", {"name": "ignored"}, "customer-key-01")

    assert retry.json() == renewed.json()
    assert retry.json()["name"] == "Alice v2"
    assert app.state.calls["customers"] == 2


def test_cleanup_removes_only_expired(client, backend, clock) -> None:
    send(client, "/api/customers", {"name": "Alice"}, "customer-key-01")
    send(client, "/api/orders", {"item": "X", "qty": 1}, "order-key-0001")
    clock.advance(3 * HOUR)

    removed = asyncio.run(cleanup_expired_idempotency_entries(backend))

    assert removed == 1
    assert len(backend) == 1
    replay = send(client, "/api/orders", {"item": "X", "qty": 1}, "order-key-0001")
    assert replay.headers["idempotency-replay"] == "true"
