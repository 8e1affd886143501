"""Date bucket aggregation: per-date image counts for jump-to-date.

Buckets are a cache derived from the ``images`` table.  They can be rebuilt
from scratch at any time; losing them only costs a recomputation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import ColumnElement, delete, func, insert, select
from sqlalchemy.dialects.sqlite import Insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from imgindex.exceptions import IndexWriteError
from imgindex.models.image import DateBucket, ImageRecord
from imgindex.services.datetime_service import now_utc

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from imgindex.services.index_store import IndexStore

logger = logging.getLogger(__name__)

# SQL counterpart of scanner.DATE_PREFIX_RE.
DATE_PATH_GLOB = "[0-9][0-9][0-9][0-9]-[0-9][0-9]-[0-9][0-9]/*"


def _path_date() -> ColumnElement[str]:
    return func.substr(ImageRecord.path, 1, 10)


def _bucket_upsert() -> Insert:
    table = DateBucket.__table__
    stmt = sqlite_insert(table)
    return stmt.on_conflict_do_update(
        index_elements=[table.c.date],
        set_={"count": stmt.excluded["count"], "updated_at": stmt.excluded.updated_at},
    )


class DateBucketAggregator:
    """Maintains the ``date_stats`` table through the shared index store."""

    def __init__(self, store: IndexStore) -> None:
        self._store = store

    async def update_date_stats(self, date: str, count: int) -> bool:
        """Insert or update one bucket. Returns False if the write failed."""
        try:
            await self.batch_update_date_stats({date: count})
        except IndexWriteError as exc:
            logger.error("Failed to update date stats for %s: %s", date, exc)
            return False
        return True

    async def batch_update_date_stats(self, date_counts: Mapping[str, int]) -> int:
        """Insert or update several buckets in one transaction.

        Raises:
            IndexWriteError: the batch failed; no bucket was changed.
        """
        if not date_counts:
            return 0
        now = now_utc()
        rows = [
            {"date": date, "count": count, "updated_at": now}
            for date, count in date_counts.items()
        ]
        async with self._store.write_session() as session:
            await session.execute(_bucket_upsert(), rows)
        return len(rows)

    async def get_date_stats(self) -> list[DateBucket]:
        """Return all buckets, newest date first."""
        async with self._store.session_factory() as session:
            result = await session.scalars(select(DateBucket).order_by(DateBucket.date.desc()))
            return list(result.all())

    async def get_date_offset(self, date: str) -> int:
        """Return the position of the first image on ``date`` in newest-first order.

        This is the number of indexed images whose path prefix compares
        strictly greater than ``date``.  Zero-padded ``YYYY-MM-DD`` strings
        sort chronologically, so no date parsing is done.
        """
        stmt = select(func.count()).select_from(ImageRecord).where(_path_date() > date)
        async with self._store.session_factory() as session:
            offset = await session.scalar(stmt)
        return offset or 0

    async def rebuild_from_images(self) -> int:
        """Replace every bucket with counts grouped from the index.

        Returns the number of buckets written.

        Raises:
            IndexWriteError: the rebuild failed; the old buckets are kept.
        """
        day = _path_date().label("date")
        grouped = (
            select(day, func.count())
            .where(ImageRecord.path.op("GLOB")(DATE_PATH_GLOB))
            .group_by(day)
        )
        async with self._store.write_session() as session:
            rows = (await session.execute(grouped)).all()
            await session.execute(delete(DateBucket))
            if rows:
                now = now_utc()
                await session.execute(
                    insert(DateBucket.__table__),
                    [{"date": date, "count": count, "updated_at": now} for date, count in rows],
                )

        logger.info("Rebuilt date stats: %d dates", len(rows))
        return len(rows)

    async def refresh_dates(self, dates: Iterable[str]) -> dict[str, int]:
        """Recount the given dates from the index and update only their buckets.

        A date with no remaining images loses its bucket.  Returns the new
        count per date.
        """
        counts: dict[str, int] = {}
        now = now_utc()
        async with self._store.write_session() as session:
            for date in dict.fromkeys(dates):
                count = await session.scalar(
                    select(func.count())
                    .select_from(ImageRecord)
                    .where(ImageRecord.path.startswith(f"{date}/", autoescape=True))
                )
                count = count or 0
                counts[date] = count
                if count:
                    await session.execute(
                        _bucket_upsert(), {"date": date, "count": count, "updated_at": now}
                    )
                else:
                    await session.execute(delete(DateBucket).where(DateBucket.date == date))

        logger.debug("Refreshed date stats: %s", counts)
        return counts
