"""
Test configuration and fixtures.

Provides:
- In-memory SQLite engine per test (aiosqlite, single shared connection)
- ForumService bound to a session on that engine
- Caller contexts for two organizations and an unaffiliated user
- HTTPX AsyncClient with get_db overridden
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from lexforum.core.database import get_db, init_db
from lexforum.core.security import CallerContext
from lexforum.main import app
from lexforum.models.user import User
from lexforum.modules.forum import ForumService

ORG_A = 7
ORG_B = 9


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    # Let SQLAlchemy own BEGIN so SAVEPOINTs behave
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        session.add_all(
            [
                User(id=1, email="ada@firm-a.test", first_name="Ada", last_name="Admin", organization_id=ORG_A),
                User(id=2, email="mo@firm-a.test", first_name="Mo", last_name="Member", organization_id=ORG_A),
                User(id=3, email="olu@firm-b.test", first_name="Olu", last_name="Other", organization_id=ORG_B),
                User(id=4, email="pat@public.test", first_name="Pat", last_name="Public"),
            ]
        )
        await session.flush()
        yield session


@pytest.fixture
def forum(db: AsyncSession) -> ForumService:
    return ForumService(db)


# =============================================================================
# Caller Fixtures
# =============================================================================


@pytest.fixture
def org_admin() -> CallerContext:
    """Admin of organization A."""
    return CallerContext(user_id=1, organization_id=ORG_A, roles=("admin",))


@pytest.fixture
def org_member() -> CallerContext:
    """Plain member of organization A."""
    return CallerContext(user_id=2, organization_id=ORG_A, roles=("member",))


@pytest.fixture
def other_org_user() -> CallerContext:
    """Admin of organization B."""
    return CallerContext(user_id=3, organization_id=ORG_B, roles=("admin",))


@pytest.fixture
def public_user() -> CallerContext:
    """Caller without an organization."""
    return CallerContext(user_id=4)


# =============================================================================
# Client Fixtures
# =============================================================================


def caller_headers(caller: CallerContext) -> dict[str, str]:
    headers = {"X-User-Id": str(caller.user_id)}
    if caller.organization_id is not None:
        headers["X-Organization-Id"] = str(caller.organization_id)
    if caller.roles:
        headers["X-User-Roles"] = ",".join(caller.roles)
    return headers


@pytest.fixture
def headers_for():
    """Build gateway identity headers for a caller."""
    return caller_headers


@pytest_asyncio.fixture
async def api_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient whose requests each get their own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as client:
        yield client
    app.dependency_overrides.clear()
