"""End-to-end scenarios for the idempotency cache.

Each module drives the demo point-of-sale application (or a small FastAPI
app) through FastAPI's TestClient and checks one aspect of replay behavior.
"""
