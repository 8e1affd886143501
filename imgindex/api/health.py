"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from imgindex import __version__
from imgindex.api.deps import get_session, get_sync_engine
from imgindex.models.image import ImageRecord
from imgindex.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    scan_state: str
    last_scan_ok: bool | None = None
    images: int | None = None


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    sync_engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> HealthResponse:
    """Index health: database reachability, engine state and last run outcome."""
    db_status = "ok"
    images: int | None = None
    try:
        images = await session.scalar(select(func.count()).select_from(ImageRecord))
    except Exception:
        logger.warning("Health check index query failed", exc_info=True)
        db_status = "error"

    report = sync_engine.last_report
    last_scan_ok = report.ok if report is not None else None
    healthy = db_status == "ok" and last_scan_ok is not False

    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=__version__,
        database=db_status,
        scan_state=str(sync_engine.state),
        last_scan_ok=last_scan_ok,
        images=images,
    )
