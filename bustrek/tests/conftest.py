"""
Test configuration for BusTrek tests.

Every test gets its own SQLite file (aiosqlite) with tables created straight from
Base.metadata - no Alembic, no Redis, no live server. DATABASE_URL is set before
bustrek is imported because Settings() refuses to start without it.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./bustrek-test.db")
os.environ.setdefault("AUTO_MIGRATE", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import bustrek.models  # noqa: F401 - registers ORM tables
from bustrek.config import Settings
from bustrek.database import Base, Database
from bustrek.main import create_app
from bustrek.sessions import SessionStore

from payloads import SIGNUP_PAYLOAD


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'bustrek.db'}",
        auto_migrate=False,
        redis_url="",
        db_retries=2,
        db_retry_delay=0,
    )


@pytest_asyncio.fixture
async def database(app_settings):
    db = Database.from_settings(app_settings)
    engine = await db.connect()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.close()


@pytest.fixture
def sessions():
    store = SessionStore()
    yield store
    store.clear()


@pytest.fixture
def app(app_settings, database, sessions):
    return create_app(app_settings, database=database, sessions=sessions)


@pytest_asyncio.fixture
async def client(app):
    """Async httpx client using ASGI transport - no live server needed."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def signed_up(client):
    """Sign up the default user; returns (user dict, token)."""
    response = await client.post("/api/auth/signup", json=SIGNUP_PAYLOAD)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"], data["token"]
