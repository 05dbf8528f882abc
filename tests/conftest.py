"""Shared pytest fixtures for service and API tests.

Every test gets a fresh on-disk SQLite database (through aiosqlite) so the
real unique index, RETURNING clauses and atomic updates are exercised
without a PostgreSQL server. Set TEST_DATABASE_URL to run against one.
"""

import logging
import os
from collections.abc import AsyncGenerator
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.clicks import ClickRecorder
from app.config import get_settings
from app.database import Base, get_db
from app.dependencies import get_click_recorder
from app.main import app, global_limiter, shorten_limiter
from app.url_service import URLShorteningService

settings = get_settings()


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    global_limiter.reset()
    shorten_limiter.reset()


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    database_url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'urls.db'}"
    test_engine = create_async_engine(database_url, echo=False)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def click_recorder(session_factory) -> AsyncGenerator[ClickRecorder, None]:
    recorder = ClickRecorder(session_factory)
    yield recorder
    await recorder.drain(timeout=5)


@pytest.fixture
def url_service(db_session, click_recorder) -> URLShorteningService:
    """Service bound to a real session, without going through HTTP."""
    ctx = SimpleNamespace(
        database=db_session,
        click_recorder=click_recorder,
        logger=logging.getLogger("urlshortener.tests"),
        settings=settings,
    )
    return URLShorteningService(ctx)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, click_recorder) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_get_click_recorder() -> ClickRecorder:
        return click_recorder

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_click_recorder] = override_get_click_recorder

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
