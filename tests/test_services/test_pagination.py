"""Tests for the pagination service."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests._helpers import scanned

if TYPE_CHECKING:
    from imgindex.bootstrap import IndexServices


async def _seed(services: IndexServices, n: int) -> None:
    await services.store.batch_upsert([scanned(f"2026-02-14/{i:03d}.png", i) for i in range(n)])


class TestListPage:
    async def test_full_page_with_more(self, services: IndexServices) -> None:
        await _seed(services, 5)
        page = await services.pagination.list_page(2, 0)
        assert [record.mtime for record in page.records] == [4, 3]
        assert page.has_more is True
        assert (page.offset, page.limit) == (0, 2)

    async def test_exact_last_page(self, services: IndexServices) -> None:
        await _seed(services, 4)
        page = await services.pagination.list_page(2, 2)
        assert [record.mtime for record in page.records] == [1, 0]
        assert page.has_more is False

    async def test_short_last_page(self, services: IndexServices) -> None:
        await _seed(services, 5)
        page = await services.pagination.list_page(2, 4)
        assert [record.mtime for record in page.records] == [0]
        assert page.has_more is False

    async def test_offset_past_end(self, services: IndexServices) -> None:
        await _seed(services, 3)
        page = await services.pagination.list_page(10, 50)
        assert page.records == []
        assert page.has_more is False

    async def test_empty_index(self, services: IndexServices) -> None:
        page = await services.pagination.list_page(10, 0)
        assert page.records == []
        assert page.has_more is False
        assert await services.pagination.count() == 0

    async def test_negative_offset_rejected(self, services: IndexServices) -> None:
        with pytest.raises(ValueError):
            await services.pagination.list_page(10, -1)


class TestNewImagesShiftOffsets:
    async def test_insert_shifts_later_pages(self, services: IndexServices) -> None:
        await _seed(services, 4)
        first = await services.pagination.page(2, 0)

        await services.store.upsert(scanned("2026-02-15/new.png", 100))
        second = await services.pagination.page(2, 2)

        # The newest image pushes the old first page down by one.
        assert [record.path for record in second] == [first[1].path, "2026-02-14/001.png"]


class TestJumpToDate:
    async def test_jump_then_page(self, services: IndexServices) -> None:
        await services.store.batch_upsert(
            [
                scanned("2026-02-14/a.png", 300),
                scanned("2026-02-14/b.png", 310),
                scanned("2026-02-13/c.png", 200),
                scanned("2026-02-12/d.png", 100),
            ]
        )
        await services.aggregator.rebuild_from_images()

        offset = await services.pagination.jump_to_date("2026-02-13")
        page = await services.pagination.page(1, offset)

        assert offset == 2
        assert [record.path for record in page] == ["2026-02-13/c.png"]

    async def test_date_buckets_newest_first(self, services: IndexServices) -> None:
        await services.store.batch_upsert(
            [scanned("2026-02-12/a.png", 1), scanned("2026-02-14/b.png", 2)]
        )
        await services.aggregator.rebuild_from_images()
        buckets = await services.pagination.date_buckets()
        assert [bucket.date for bucket in buckets] == ["2026-02-14", "2026-02-12"]
