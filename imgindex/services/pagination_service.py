"""Cursor pagination over the image index.

Read-only and stateless: every call reflects the index at call time.  Images
added between two calls shift later offsets by the number of new images that
sort ahead of them; consumers keep their own window and re-request as needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from imgindex.models.image import DateBucket, ImageRecord
    from imgindex.services.date_stats_service import DateBucketAggregator
    from imgindex.services.index_store import IndexStore


@dataclass
class ImagePage:
    """One page of newest-first records."""

    records: list[ImageRecord]
    offset: int
    limit: int
    has_more: bool


class PaginationService:
    """Serves pages and jump-to-date offsets to an infinite-scroll consumer."""

    def __init__(self, store: IndexStore, aggregator: DateBucketAggregator) -> None:
        self._store = store
        self._aggregator = aggregator

    async def page(self, limit: int, offset: int) -> list[ImageRecord]:
        """Return up to ``limit`` records starting at ``offset``, newest first."""
        return await self._store.get_images(limit, offset)

    async def list_page(self, limit: int, offset: int) -> ImagePage:
        """Return a page plus whether more records follow it."""
        records = await self.page(limit, offset)
        if limit > 0 and len(records) == limit:
            has_more = offset + limit < await self._store.get_count()
        else:
            has_more = False
        return ImagePage(records=records, offset=offset, limit=limit, has_more=has_more)

    async def jump_to_date(self, date: str) -> int:
        """Return the offset of the first image on ``date``."""
        return await self._aggregator.get_date_offset(date)

    async def count(self) -> int:
        return await self._store.get_count()

    async def date_buckets(self) -> list[DateBucket]:
        return await self._aggregator.get_date_stats()
