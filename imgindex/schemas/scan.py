"""Scan trigger and status schemas."""

from __future__ import annotations

from pydantic import BaseModel


class ScanAcceptedResponse(BaseModel):
    """Result of a fire-and-forget scan trigger."""

    accepted: bool
    mode: str
    state: str


class ScanRunResponse(BaseModel):
    """Summary of a finished sync run."""

    mode: str
    started_at: str
    finished_at: str | None = None
    discovered: int
    upserted: int
    removed: int
    fixed: int
    buckets: int
    error: str | None = None


class ScanStatusResponse(BaseModel):
    state: str
    last_run: ScanRunResponse | None = None
