"""Shared test fixtures for Plangate."""

import os
import pytest
from httpx import ASGITransport, AsyncClient


HMAC_KEY = "test-hmac-key-for-unit-tests"
API_KEY = "test-admin-api-key"


@pytest.fixture
def hmac_key():
    return HMAC_KEY


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["PLANGATE_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["PLANGATE_HMAC_KEY"] = HMAC_KEY
    os.environ["PLANGATE_API_KEY"] = API_KEY

    # Clear caches and singletons so new env vars take effect
    from plangate.common.config import get_settings
    get_settings.cache_clear()

    from plangate.deps import reset_singletons
    reset_singletons()

    from plangate.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from plangate.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {
        "X-Plangate-Api-Key": API_KEY,
        "X-Plangate-Admin-Id": "admin-1",
        "X-Plangate-Admin-Email": "ops@example.com",
    }


@pytest.fixture
def service_headers():
    """API key only, as a consuming service would send it."""
    return {"X-Plangate-Api-Key": API_KEY}


@pytest.fixture
async def seeded_client(client, admin_headers):
    """Client whose catalog already holds the default plans and features."""
    from plangate.deps import get_catalog_service, get_db

    async with get_db().get_session() as session:
        await get_catalog_service().seed_defaults(session)
    return client


@pytest.fixture
async def plans(seeded_client, service_headers):
    """``{plan_name: plan_id}`` for the seeded plans."""
    resp = await seeded_client.get("/plans", headers=service_headers)
    return {p["name"]: p["id"] for p in resp.json()}
