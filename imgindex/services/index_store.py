"""Image index store: durable table of image records keyed by relative path.

The store is the single gateway for writes to the index file.  All writes run
inside one transaction guarded by an in-process lock, so a batch either lands
completely or leaves the table untouched.  Reads use their own sessions and
never wait on the lock; with WAL enabled they proceed during a scan.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from imgindex.database import ensure_tables
from imgindex.exceptions import IndexWriteError
from imgindex.filesystem.scanner import normalize_path
from imgindex.models.image import ImageRecord
from imgindex.services.datetime_service import now_utc

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from imgindex.filesystem.scanner import ScannedImage

logger = logging.getLogger(__name__)

# Rows per executemany / IN (...) clause; well under SQLite's variable limit.
_CHUNK_SIZE = 500


def _chunks(items: Sequence[Any], size: int = _CHUNK_SIZE) -> list[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def _missing_paths(rows: Sequence[tuple[str, str]]) -> list[str]:
    """Return the index paths whose backing file is gone."""
    return [path for path, full_path in rows if not os.path.exists(full_path)]


class IndexStore:
    """Owns the index database handle for the lifetime of the process.

    Constructed once at startup, passed to the components that need it, and
    closed on shutdown.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Session factory for read-only queries."""
        return self._session_factory

    async def initialize(self) -> None:
        """Create tables and indexes if they don't exist."""
        await ensure_tables(self._engine)

    async def close(self) -> None:
        """Release the database handle."""
        await self._engine.dispose()
        logger.info("Index store closed")

    @asynccontextmanager
    async def write_session(self) -> AsyncGenerator[AsyncSession]:
        """Open a session inside one write transaction.

        Only one write transaction runs at a time.  Any database error rolls
        the whole transaction back and surfaces as :class:`IndexWriteError`.
        """
        async with self._write_lock, self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as exc:
                raise IndexWriteError(str(exc)) from exc

    # -- writes ---------------------------------------------------------------

    async def upsert(self, image: ScannedImage) -> bool:
        """Insert or update one record. Returns False if the write failed."""
        try:
            return await self.batch_upsert([image]) == 1
        except IndexWriteError as exc:
            logger.error("Failed to upsert %s: %s", image.path, exc)
            return False

    async def batch_upsert(self, images: Sequence[ScannedImage]) -> int:
        """Insert or update all records in a single transaction.

        Known paths get new ``size``, ``mtime`` and ``checked_at``; ``id`` and
        ``created_at`` are left alone.  Returns the number of records applied.

        Raises:
            IndexWriteError: the batch failed; nothing was written.
        """
        if not images:
            return 0

        now = now_utc()
        rows = [
            {
                "filename": image.filename,
                "path": image.path,
                "full_path": image.full_path,
                "size": image.size,
                "mtime": image.mtime,
                "created_at": now,
                "checked_at": now,
            }
            for image in images
        ]
        table = ImageRecord.__table__
        stmt = sqlite_insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.path],
            set_={
                "size": stmt.excluded.size,
                "mtime": stmt.excluded.mtime,
                "checked_at": stmt.excluded.checked_at,
            },
        )

        async with self.write_session() as session:
            for chunk in _chunks(rows):
                await session.execute(stmt, list(chunk))

        logger.debug("Upserted %d image records", len(rows))
        return len(rows)

    async def remove_non_existent(self, path_prefix: str | None = None) -> int:
        """Delete records whose file no longer exists on disk.

        ``path_prefix`` limits the check to records whose path starts with it.
        Returns the number of deleted records.
        """
        stmt = select(ImageRecord.path, ImageRecord.full_path)
        if path_prefix:
            stmt = stmt.where(ImageRecord.path.startswith(path_prefix, autoescape=True))

        async with self._session_factory() as session:
            rows = [(row.path, row.full_path) for row in (await session.execute(stmt)).all()]

        missing = await asyncio.to_thread(_missing_paths, rows)
        if not missing:
            return 0

        deleted = 0
        async with self.write_session() as session:
            for chunk in _chunks(missing):
                result = await session.execute(
                    delete(ImageRecord)
                    .where(ImageRecord.path.in_(chunk))
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount or 0  # type: ignore[attr-defined]

        logger.info("Removed %d stale image records", deleted)
        return deleted

    async def fix_path_separators(self) -> int:
        """Rewrite back-slash paths to forward-slash form.

        If the normalized path is already indexed, the back-slash duplicate is
        dropped.  Returns the number of records fixed or dropped.
        """
        fixed = 0
        async with self.write_session() as session:
            result = await session.execute(
                select(ImageRecord.id, ImageRecord.path).where(
                    func.instr(ImageRecord.path, "\\") > 0
                )
            )
            for record_id, path in result.all():
                new_path = normalize_path(path)
                if new_path == path:
                    continue
                existing = await session.scalar(
                    select(ImageRecord.id).where(ImageRecord.path == new_path)
                )
                if existing is not None:
                    await session.execute(
                        delete(ImageRecord)
                        .where(ImageRecord.id == record_id)
                        .execution_options(synchronize_session=False)
                    )
                else:
                    await session.execute(
                        update(ImageRecord)
                        .where(ImageRecord.id == record_id)
                        .values(path=new_path)
                        .execution_options(synchronize_session=False)
                    )
                fixed += 1

        if fixed:
            logger.info("Normalized path separators on %d records", fixed)
        return fixed

    # -- reads ----------------------------------------------------------------

    async def get_images(self, limit: int = 0, offset: int = 0) -> list[ImageRecord]:
        """Return records newest first by ``mtime``; ``limit=0`` means no limit."""
        if limit < 0 or offset < 0:
            msg = f"limit and offset must be >= 0, got limit={limit}, offset={offset}"
            raise ValueError(msg)

        stmt = select(ImageRecord).order_by(ImageRecord.mtime.desc(), ImageRecord.path.desc())
        if limit > 0:
            stmt = stmt.limit(limit)
        if offset > 0:
            stmt = stmt.offset(offset)

        async with self._session_factory() as session:
            records = list((await session.scalars(stmt)).all())

        # Detached rows; legacy back-slash paths are presented normalized.
        for record in records:
            if "\\" in record.path:
                record.path = normalize_path(record.path)
        return records

    async def get_count(self) -> int:
        """Return the number of indexed images."""
        async with self._session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(ImageRecord))
        return count or 0

    async def exists(self, path: str) -> bool:
        """Return True if ``path`` is indexed."""
        async with self._session_factory() as session:
            found = await session.scalar(
                select(ImageRecord.id).where(ImageRecord.path == path).limit(1)
            )
        return found is not None

    async def get_image(self, path: str) -> ImageRecord | None:
        """Return the record for ``path``, or None."""
        async with self._session_factory() as session:
            return await session.scalar(select(ImageRecord).where(ImageRecord.path == path))
