"""Shared pytest fixtures for storefront tests."""
import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.client.rpc import StorefrontClient
from storefront.config import Settings
from storefront.db.database import Database
from storefront.db.init_db import init_db
from storefront.main import create_app

BURGER_ID = 1  # Classic Burger, 1299
SALAD_ID = 3  # Caesar Salad, 899
COFFEE_ID = 7  # Iced Coffee, 499


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def success(self, message):
        self.messages.append(("success", message))

    def error(self, message):
        self.messages.append(("error", message))


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite://", secret_key="test-secret-key-long-enough-for-hs256", seed_menu=True)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    """Log a user in and return bearer headers; the session cookie is dropped."""

    def _login(open_id="test-user", **extra):
        resp = client.post("/api/trpc/auth.login", json={"openId": open_id, **extra})
        assert resp.status_code == 200, resp.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def database():
    database = Database("sqlite+aiosqlite://")
    await init_db(database, seed=False)
    yield database
    await database.dispose()


@pytest.fixture
async def db(database):
    async with database.session_factory() as session:
        yield session


@pytest.fixture
async def live_app(settings):
    app = create_app(settings)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def rpc(live_app):
    client = StorefrontClient(base_url="http://testserver", transport=httpx.ASGITransport(app=live_app))
    yield client
    await client.aclose()
