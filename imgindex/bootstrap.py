"""Construction of the index services shared by the API and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from imgindex.database import create_engine
from imgindex.services.date_stats_service import DateBucketAggregator
from imgindex.services.index_store import IndexStore
from imgindex.services.pagination_service import PaginationService
from imgindex.services.sync_engine import SyncEngine

if TYPE_CHECKING:
    from imgindex.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class IndexServices:
    """The opened store and the components wired to it."""

    store: IndexStore
    aggregator: DateBucketAggregator
    sync_engine: SyncEngine
    pagination: PaginationService

    async def close(self) -> None:
        """Stop background scans, then release the database handle."""
        try:
            await self.sync_engine.stop()
        finally:
            await self.store.close()


async def open_index(settings: Settings) -> IndexServices:
    """Open the index file, ensure its schema, and wire the services."""
    engine, session_factory = create_engine(settings)
    store = IndexStore(engine, session_factory)
    try:
        await store.initialize()
    except Exception:
        await store.close()
        raise

    aggregator = DateBucketAggregator(store)
    sync_engine = SyncEngine(
        store,
        aggregator,
        settings.images_dir,
        recent_window_days=settings.recent_window_days,
        timezone=settings.scan_timezone,
    )
    logger.debug("Index opened at %s", settings.database_url)
    return IndexServices(
        store=store,
        aggregator=aggregator,
        sync_engine=sync_engine,
        pagination=PaginationService(store, aggregator),
    )
