from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from welfare.db import get_session
from welfare.main import app
from welfare.models import SQLModel
from welfare.services.documents import InMemoryDocumentRenderer, set_document_renderer
from welfare.services.employee import InMemoryEmployeeService, set_employee_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create a fresh SQLite request store for each test.

    Services commit and roll back for real, so each test gets its own
    database file instead of a wrapping transaction.
    """
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'welfare.db'}")
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield a database session on the per-test store."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with a fresh session per HTTP request."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_collaborators() -> Iterator[None]:
    """Give every test an empty employee directory and document store."""
    set_employee_service(InMemoryEmployeeService())
    set_document_renderer(InMemoryDocumentRenderer())
    yield
    set_employee_service(InMemoryEmployeeService())
    set_document_renderer(InMemoryDocumentRenderer())
