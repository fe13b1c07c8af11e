"""
Integration Test Fixtures
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.deals.main import create_app
from src.crm.database.adapter import DatabaseAdapter, DatabaseConfig
from src.crm.store import InMemoryDealStore, SqlDealStore


@pytest.fixture(params=["memory", "sql"])
async def deal_store(request, tmp_path):
    """Each backend behind the same interface; SQL runs on a temp SQLite file."""
    if request.param == "memory":
        yield InMemoryDealStore()
        return

    db = DatabaseAdapter(DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "roofcrm.db")))
    store = SqlDealStore(db, owns_connection=True)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def client(engine, monkeypatch):
    """API client over an app wired to the in-memory engine."""
    monkeypatch.setenv("AUTH_REQUIRED", "true")
    app = create_app(engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
