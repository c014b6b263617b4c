"""Demo point-of-sale API with the idempotency cache installed.

Run with: python demo_app.py

Then create an order twice with the same key; the second call is a replay:

    curl -X POST localhost:8000/api/orders \\
        -H 'Content-Type: application/json' \\
        -H 'X-User-Id: cashier-7' \\
        -H 'Idempotency-Key: 9f86d081-884c-4d30-8e1b-1b9bfe6a0f0c' \\
        -d '{"item": "X", "qty": 1}'

The storage backend is chosen from IDEMPOTENCY_* environment variables:
Redis when IDEMPOTENCY_REDIS_URL is set, the SQLite fallback otherwise.
"""

import itertools
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from idempotency_cache.adapters.asgi import ASGIIdempotencyMiddleware
from idempotency_cache.config import IdempotencyConfig
from idempotency_cache.core.cleanup import start_cleanup_task, stop_cleanup_task
from idempotency_cache.observability.logging import configure_logging
from idempotency_cache.policies import (
    CUSTOMERS_POLICY,
    GENERIC_API_POLICY,
    ORDERS_POLICY,
    PAYMENTS_POLICY,
)
from idempotency_cache.store import IdempotencyStore


class HeaderAuthMiddleware(BaseHTTPMiddleware):
    """Stand-in authentication: trusts X-User-Id / X-User-Role headers.

    A real deployment replaces this with its own authentication layer; the
    idempotency middleware only reads ``request.state.user``.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        user_id = request.headers.get("x-user-id")
        if user_id:
            request.state.user = {
                "id": user_id,
                "role": request.headers.get("x-user-role", "cashier"),
            }
        return await call_next(request)


# Request/Response Models
class OrderRequest(BaseModel):
    item: str
    qty: int


class PaymentRequest(BaseModel):
    order_id: str
    amount: int
    currency: str = "VND"
    method: str = "cash"


class CustomerRequest(BaseModel):
    name: str
    phone: Optional[str] = None


def create_app(
    store: IdempotencyStore | None = None,
    config: IdempotencyConfig | None = None,
) -> FastAPI:
    """Build the demo application.

    Args:
        store: Idempotency store; built from config when omitted
        config: Configuration; read from the environment when omitted
    """
    config = config or IdempotencyConfig.from_env()
    store = store or IdempotencyStore.from_config(config)
    sequence = itertools.count(1)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = await start_cleanup_task(store.backend, config.cleanup_interval_seconds)
        try:
            yield
        finally:
            await stop_cleanup_task(task)
            await store.close()

    app = FastAPI(
        title="Idempotency Cache Demo",
        description="Point-of-sale API with idempotent writes",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        ASGIIdempotencyMiddleware,
        store=store,
        config=config,
        policies={
            "/api/orders": ORDERS_POLICY,
            "/api/payments": PAYMENTS_POLICY,
            "/api/customers": CUSTOMERS_POLICY,
            "/api": GENERIC_API_POLICY,
        },
    )
    # Added last so it runs first and sets request.state.user
    app.add_middleware(HeaderAuthMiddleware)

    app.state.calls = {"orders": 0, "payments": 0, "customers": 0, "products": 0}

    @app.get("/api/status")
    async def get_status():
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}

    @app.post("/api/orders", status_code=201)
    async def create_order(order: OrderRequest):
        app.state.calls["orders"] += 1
        return {"id": f"ord_{next(sequence)}", "item": order.item, "qty": order.qty}

    @app.post("/api/payments", status_code=201)
    async def create_payment(payment: PaymentRequest):
        app.state.calls["payments"] += 1
        if payment.amount <= 0:
            return JSONResponse(
                status_code=422,
                content={"success": False, "error": "INVALID_AMOUNT"},
            )
        return {
            "id": f"pay_{next(sequence)}",
            "order_id": payment.order_id,
            "amount": payment.amount,
            "currency": payment.currency,
            "status": "captured",
        }

    @app.post("/api/customers", status_code=201)
    async def create_customer(customer: CustomerRequest):
        app.state.calls["customers"] += 1
        return {"id": f"cus_{next(sequence)}", "name": customer.name, "phone": customer.phone}

    @app.put("/api/products/{product_id}")
    async def update_product(product_id: str, data: dict):
        app.state.calls["products"] += 1
        return {"id": product_id, "revision": next(sequence), **data}

    return app


if __name__ == "__main__":
    configure_logging(level="INFO", json_output=False)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000, log_level="info")
