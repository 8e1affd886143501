"""Shared test fixtures for the image index."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from imgindex.bootstrap import IndexServices, open_index
from imgindex.config import Settings
from imgindex.main import attach_services, create_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    """Create an empty image root directory."""
    root = tmp_path / "images"
    root.mkdir()
    return root


@pytest.fixture
def test_settings(images_dir: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths and no background scanning."""
    db_path = tmp_path / "db" / "test.db"
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=False,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        images_dir=images_dir,
        scan_on_startup=False,
        scan_interval_seconds=0,
    )


@pytest.fixture
async def services(test_settings: Settings) -> AsyncGenerator[IndexServices]:
    """Open a fresh index with all services wired."""
    opened = await open_index(test_settings)
    yield opened
    await opened.close()


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine."""
    test_settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)  # type: ignore[union-attr]
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with the index services attached.

    Opens the index the way the application lifespan does, because
    ASGITransport does not trigger it.
    """
    app = create_app(settings)
    services = await open_index(settings)
    attach_services(app, services)
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        await services.close()
