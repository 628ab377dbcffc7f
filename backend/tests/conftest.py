"""
Test Configuration — Fixtures for async DB, test client, catalog and teams.

Each test gets its own in-memory SQLite database (a single shared connection
via StaticPool), so app code is free to commit.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_db
from api.main import app
from core import config as config_module
from core.security import create_admin_token, create_team_token
from db.session import Base

# Use in-memory SQLite for tests (JSONB falls back to JSON).
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached; tests that patch the environment must not leak into others."""
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


@pytest.fixture
async def test_engine():
    """Create a test database engine and build all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(test_db):
    """Seed the default IT catalog (IT-001 … IT-008)."""
    from inventory.catalog import seed_catalog

    await seed_catalog(test_db)
    return test_db


@pytest.fixture
async def team(catalog):
    """A registered team with its inventory initialized from the catalog."""
    from teams.service import create_team

    return await create_team(catalog, "Team Alpha")


@pytest.fixture
async def other_team(catalog):
    from teams.service import create_team

    return await create_team(catalog, "Team Beta")


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_admin_token()}"}


@pytest.fixture
def team_headers(team):
    return {"Authorization": f"Bearer {team.api_key}"}


@pytest.fixture
def judging_headers(team):
    """Team token issued while the platform was in judging mode."""
    return {"Authorization": f"Bearer {create_team_token(team.team_id, 'judging')}"}


@pytest.fixture
async def client(test_db):
    """Create an async test client with the DB dependency overridden."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
