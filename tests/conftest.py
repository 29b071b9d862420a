from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator

import httpx
import pytest
from pymongo import MongoClient

from src.rule_engine.schemas.rules import Rule

TEST_DB_NAME = "ruleengine_test"


def _load_test_mongo_uri() -> str | None:
    """
    Resolve MongoDB URI for integration tests.

    Priority:
      1) RULE_ENGINE_MONGO_URI
      2) BACKEND_MONGO_URI (fallback)
    """
    return os.getenv("RULE_ENGINE_MONGO_URI") or os.getenv("BACKEND_MONGO_URI")


def _make_rule(rule_id: int, prom_id: int, **overrides) -> Rule:
    fields = {
        "id": rule_id,
        "prom_id": prom_id,
        "expr": "up",
        "op": "==",
        "value": "0",
        "for": "5m",
        "labels": {"severity": "critical"},
        "summary": "down",
        "description": "instance down",
    }
    fields.update(overrides)
    return Rule(**fields)


@pytest.fixture
def make_rule():
    """Factory building a Rule with sensible defaults; keyword overrides use wire names (e.g. 'for')."""
    return _make_rule


@pytest.fixture(scope="session")
def mongo_uri() -> str:
    """MongoDB URI for integration tests; skips the test when none is configured."""
    uri = _load_test_mongo_uri()
    if not uri:
        pytest.skip("No MongoDB configured (set RULE_ENGINE_MONGO_URI) for API integration tests")
    return uri


@pytest.fixture(scope="session")
def mongo_client(mongo_uri: str) -> Iterator[MongoClient]:
    """PyMongo client used by tests for direct DB inspection/cleanup."""
    client = MongoClient(mongo_uri, connect=True)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture(scope="session")
def mongo_db(mongo_client: MongoClient):
    """Test database handle (the app is pointed at the same DB name)."""
    return mongo_client[TEST_DB_NAME]


@pytest.fixture
def clean_db(mongo_db):
    """
    Ensure collections are clean between tests.

    Documents are deleted rather than collections dropped so indexes survive.
    """
    for name in ["proms", "rules", "counters"]:
        mongo_db[name].delete_many({})
    return mongo_db


@pytest.fixture(scope="session")
def app(mongo_uri: str):
    """FastAPI app fixture wired to the test database with the sync loop disabled."""
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("RULE_ENGINE_MONGO_URI", mongo_uri)
        mp.setenv("RULE_ENGINE_DB_NAME", TEST_DB_NAME)
        mp.setenv("RULES_SYNC_ENABLED", "false")

        from src.rule_engine.main import app as fastapi_app

        return fastapi_app


@pytest.fixture
async def async_client(app, clean_db) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client bound to the FastAPI ASGI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def create_test_prom(async_client: httpx.AsyncClient) -> int:
    """Helper fixture to register a prom via the API and return its id."""
    res = await async_client.post("/api/v1/proms", json={"url": "http://prometheus:9090"})
    assert res.status_code == 201, res.text
    data = res.json()
    assert isinstance(data["id"], int)
    return data["id"]
