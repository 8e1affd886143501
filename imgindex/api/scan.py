"""Scan trigger and status endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from imgindex.api.deps import get_sync_engine
from imgindex.schemas.scan import ScanAcceptedResponse, ScanRunResponse, ScanStatusResponse
from imgindex.services.datetime_service import format_iso
from imgindex.services.sync_engine import ScanMode, ScanReport, SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images/scan", tags=["scan"])


def _report_response(report: ScanReport) -> ScanRunResponse:
    return ScanRunResponse(
        mode=str(report.mode),
        started_at=format_iso(report.started_at),
        finished_at=format_iso(report.finished_at) if report.finished_at else None,
        discovered=report.discovered,
        upserted=report.upserted,
        removed=report.removed,
        fixed=report.fixed,
        buckets=report.buckets,
        error=report.error,
    )


@router.post("", response_model=ScanAcceptedResponse, status_code=202)
async def trigger_scan(
    sync_engine: Annotated[SyncEngine, Depends(get_sync_engine)],
    mode: Annotated[ScanMode, Query()] = ScanMode.RECENT,
) -> ScanAcceptedResponse:
    """Start a background scan; does not wait for it to finish."""
    accepted = sync_engine.trigger_scan(mode)
    if not accepted:
        logger.info("Scan request (%s) coalesced with run in progress", mode)
    return ScanAcceptedResponse(accepted=accepted, mode=str(mode), state=str(sync_engine.state))


@router.get("/status", response_model=ScanStatusResponse)
async def scan_status(
    sync_engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> ScanStatusResponse:
    """Current engine state and the last finished run."""
    report = sync_engine.last_report
    return ScanStatusResponse(
        state=str(sync_engine.state),
        last_run=_report_response(report) if report is not None else None,
    )
