"""Shared API dependencies: settings, DB session, index services."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from imgindex.config import Settings
from imgindex.services.pagination_service import PaginationService
from imgindex.services.sync_engine import SyncEngine


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.index_store.session_factory
    async with session_factory() as session:
        yield session


def get_pagination_service(request: Request) -> PaginationService:
    """Get the read-only pagination service from app state."""
    service: PaginationService = request.app.state.pagination_service
    return service


def get_sync_engine(request: Request) -> SyncEngine:
    """Get the sync engine from app state."""
    engine: SyncEngine = request.app.state.sync_engine
    return engine
