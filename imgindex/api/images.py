"""Image index query endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from imgindex.api.deps import get_pagination_service, get_settings
from imgindex.config import Settings
from imgindex.schemas.image import (
    DateBucketResponse,
    DateOffsetResponse,
    ImageCountResponse,
    ImageListResponse,
    ImageSummary,
)
from imgindex.services.pagination_service import PaginationService

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

router = APIRouter(prefix="/api/images", tags=["images"])


@router.get("", response_model=ImageListResponse)
async def list_images(
    pagination: Annotated[PaginationService, Depends(get_pagination_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    limit: Annotated[int | None, Query(ge=1)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ImageListResponse:
    """List indexed images newest first."""
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    page = await pagination.list_page(page_size, offset)
    return ImageListResponse(
        files=[
            ImageSummary(
                filename=record.filename,
                path=record.path,
                size=record.size,
                mtime=record.mtime,
            )
            for record in page.records
        ],
        offset=page.offset,
        limit=page.limit,
        has_more=page.has_more,
    )


@router.get("/count", response_model=ImageCountResponse)
async def image_count(
    pagination: Annotated[PaginationService, Depends(get_pagination_service)],
) -> ImageCountResponse:
    """Total number of indexed images."""
    return ImageCountResponse(count=await pagination.count())


@router.get("/dates", response_model=list[DateBucketResponse])
async def date_buckets(
    pagination: Annotated[PaginationService, Depends(get_pagination_service)],
) -> list[DateBucketResponse]:
    """Per-date image counts, newest date first."""
    buckets = await pagination.date_buckets()
    return [DateBucketResponse(date=bucket.date, count=bucket.count) for bucket in buckets]


@router.get("/dates/{date}/offset", response_model=DateOffsetResponse)
async def date_offset(
    date: Annotated[str, Path(pattern=_DATE_PATTERN)],
    pagination: Annotated[PaginationService, Depends(get_pagination_service)],
) -> DateOffsetResponse:
    """Offset of the first image on ``date`` in the newest-first listing."""
    return DateOffsetResponse(date=date, offset=await pagination.jump_to_date(date))
