"""Scenario 7: Primary Store and Relational Fallback

The same replay behavior holds whichever backend was selected at startup:
- Redis primary store (fakeredis), expiry delegated to Redis
- SQL fallback on a SQLite file, expiry via the expires_at column
"""

from pathlib import Path

import fakeredis.aioredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine

from demo_app import create_app
from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.storage.base import StorageBackend
from idempotency_cache.storage.redis import RedisStorageBackend
from idempotency_cache.storage.sql import SQLStorageBackend
from idempotency_cache.store import IdempotencyStore

KEY = "9f86d081-884c-4d30-8e1b-1b9bfe6a0f0c"


@pytest.fixture(params=["redis", "sql"])
def backend(request, tmp_path: Path) -> StorageBackend:
    if request.param == "redis":
        return RedisStorageBackend(fakeredis.aioredis.FakeRedis(decode_responses=True))
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'idempotency.db'}")
    return SQLStorageBackend(engine)


def test_replay_through_backend(backend: StorageBackend) -> None:
    app = create_app(
        store=IdempotencyStore(backend),
        config=IdempotencyConfig(storage_backend="memory"),
    )
    headers = {"X-User-Id": "cashier-7", "Idempotency-Key": KEY}

    with TestClient(app) as client:
        first = client.post("/api/orders", json={"item": "X", "qty": 1}, headers=headers)
        retry = client.post("/api/orders", json={"item": "Y", "qty": 2}, headers=headers)
        other_caller = client.post(
            "/api/orders",
            json={"item": "Z", "qty": 3},
            headers={"X-User-Id": "cashier-8", "Idempotency-Key": KEY},
        )

    assert first.status_code == 201
    assert first.json() == {"id": "ord_1", "item": "X", "qty": 1}
    assert retry.status_code == 201
    assert retry.content == first.content
    assert retry.headers["idempotency-replay"] == "true"
    assert other_caller.json()["id"] == "ord_2"
    assert app.state.calls["orders"] == 2
