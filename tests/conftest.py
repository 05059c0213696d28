"""Shared test fixtures for Entitlement-Engine."""

import os
import pytest
from httpx import ASGITransport, AsyncClient


API_KEY = "test-admin-api-key"
BILLING_TOKEN = "test-billing-token"


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["ENTITLEMENT_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["ENTITLEMENT_API_KEY"] = API_KEY
    os.environ["ENTITLEMENT_BILLING_SERVICE_TOKEN"] = BILLING_TOKEN
    os.environ["ENTITLEMENT_BILLING_BASE_URL"] = "http://billing.test"

    # Clear caches and singletons so new env vars take effect
    from entitlement_engine.common.config import get_settings
    get_settings.cache_clear()

    from entitlement_engine.deps import reset_singletons
    reset_singletons()

    from entitlement_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from entitlement_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def api_headers():
    return {"X-Entitlement-Api-Key": API_KEY}
