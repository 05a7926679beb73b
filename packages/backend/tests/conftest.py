"""Test fixtures — a fresh database per test.

Learn: Testing pattern for the session service:

1. Each test gets its own engine and a freshly created schema. By default
   that is a SQLite file under pytest's tmp_path (via aiosqlite); set
   JWTAUTH_TEST_DATABASE_URL to run the same suite against PostgreSQL.
2. The service opens and commits its own transactions, exactly as in
   production, so tests observe real commit/rollback behaviour.
3. The HTTP client overrides the app's service and session-factory
   dependencies to point at the per-test database.

The required JWTAUTH_* settings are set before anything imports
jwtauth.config, which refuses to load without them.
"""

import os
import tempfile
from datetime import timedelta

_SCRATCH = tempfile.mkdtemp(prefix="jwtauth-tests-")

ACCESS_SECRET = "test-access-secret-" + "a" * 64
REFRESH_SECRET = "test-refresh-secret-" + "r" * 64

os.environ.setdefault("JWTAUTH_DATABASE_URL", f"sqlite+aiosqlite:///{_SCRATCH}/app.db")
os.environ.setdefault("JWTAUTH_ACCESS_SECRET", ACCESS_SECRET)
os.environ.setdefault("JWTAUTH_REFRESH_SECRET", REFRESH_SECRET)
os.environ.setdefault("JWTAUTH_ACCESS_TOKEN_LIFETIME", "900")
os.environ.setdefault("JWTAUTH_REFRESH_TOKEN_LIFETIME", "2592000")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402

from jwtauth.auth.dependencies import get_session_service  # noqa: E402
from jwtauth.db.engine import build_session_factory, get_session_factory  # noqa: E402
from jwtauth.db.models import Base, RefreshGeneration  # noqa: E402
from jwtauth.main import app  # noqa: E402
from jwtauth.services.session_service import SessionService, TokenConfig  # noqa: E402

TEST_DB_URL = os.environ.get("JWTAUTH_TEST_DATABASE_URL")


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """Per-test engine with a freshly created schema."""
    url = TEST_DB_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    eng = create_async_engine(url, echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        async with eng.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def token_config():
    return TokenConfig(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_token_lifetime=timedelta(minutes=15),
        refresh_token_lifetime=timedelta(days=30),
        operation_timeout_seconds=5.0,
    )


@pytest.fixture()
def service(session_factory, token_config):
    return SessionService(session_factory, token_config)


@pytest.fixture()
def generation_ids(session_factory):
    """Return a coroutine function listing a user's generation rows."""

    async def _generation_ids(user_id) -> list[int]:
        async with session_factory() as db:
            result = await db.execute(
                select(RefreshGeneration.generation_id).where(
                    RefreshGeneration.user_id == user_id
                )
            )
            return list(result.scalars().all())

    return _generation_ids


def _override(session_factory, service):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_session_service] = lambda: service


@pytest_asyncio.fixture()
async def client(session_factory, service):
    """HTTP client with the app's database dependencies overridden for testing.

    Requests arrive from 127.0.0.1 (httpx's ASGITransport default).
    """
    _override(session_factory, service)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def roaming_client(session_factory, service):
    """Same app, but requests arrive from a different client address."""
    _override(session_factory, service)

    transport = ASGITransport(app=app, client=("203.0.113.7", 4242))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
