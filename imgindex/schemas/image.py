"""Image index schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ImageSummary(BaseModel):
    """Public view of one indexed image (absolute paths are never exposed)."""

    filename: str
    path: str
    size: int
    mtime: int = Field(description="Modification time, seconds since epoch")


class ImageListResponse(BaseModel):
    """One page of images, newest first."""

    files: list[ImageSummary] = Field(default_factory=list)
    offset: int
    limit: int
    has_more: bool


class ImageCountResponse(BaseModel):
    count: int


class DateBucketResponse(BaseModel):
    """Image count for one calendar date."""

    date: str
    count: int


class DateOffsetResponse(BaseModel):
    """Position of the first image on a date in the newest-first listing."""

    date: str
    offset: int
