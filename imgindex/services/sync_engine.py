"""Incremental sync engine: keeps the index in step with the image tree.

Three kinds of run:

- ``full``: walk the whole root, upsert everything, rebuild all date buckets.
- ``recent``: walk only the newest date directories (today and yesterday by
  default), upsert, and refresh just those dates' buckets.
- ``check`` / ``fix``: prune records whose file is gone, or normalize
  back-slash paths; either is followed by a bucket rebuild if it changed rows.

Only one run is in flight at a time.  A trigger that arrives while a run is
active is skipped, not queued; the next periodic tick covers the same ground.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from imgindex.exceptions import IndexWriteError
from imgindex.filesystem.scanner import scan_date_directory, scan_directory
from imgindex.services.datetime_service import now_utc, recent_dates

if TYPE_CHECKING:
    from datetime import date, datetime
    from pathlib import Path

    from imgindex.filesystem.scanner import ScannedImage
    from imgindex.services.date_stats_service import DateBucketAggregator
    from imgindex.services.index_store import IndexStore

logger = logging.getLogger(__name__)


class SyncState(StrEnum):
    """Lifecycle of a sync run."""

    IDLE = "idle"
    SCANNING = "scanning"
    RECONCILING = "reconciling"


class ScanMode(StrEnum):
    """Kind of sync run."""

    FULL = "full"
    RECENT = "recent"
    CHECK = "check"
    FIX = "fix"


@dataclass
class ScanReport:
    """Outcome of one sync run."""

    mode: ScanMode
    started_at: datetime
    finished_at: datetime | None = None
    discovered: int = 0
    upserted: int = 0
    removed: int = 0
    fixed: int = 0
    buckets: int = 0
    dates: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncEngine:
    """Single writer for the index.

    Args:
        store: The opened index store.
        aggregator: Date bucket aggregator sharing ``store``.
        images_dir: Root of the image tree.
        recent_window_days: Number of date directories a recent scan walks.
        timezone: Timezone in which "today" is computed.
    """

    def __init__(
        self,
        store: IndexStore,
        aggregator: DateBucketAggregator,
        images_dir: Path,
        *,
        recent_window_days: int = 2,
        timezone: str = "UTC",
    ) -> None:
        if recent_window_days < 1:
            msg = f"recent_window_days must be >= 1, got {recent_window_days}"
            raise ValueError(msg)
        self._store = store
        self._aggregator = aggregator
        self._images_dir = images_dir
        self._recent_window_days = recent_window_days
        self._timezone = timezone
        self._state = SyncState.IDLE
        self._last_report: ScanReport | None = None
        self._tasks: set[asyncio.Task[ScanReport | None]] = set()
        self._periodic_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_report(self) -> ScanReport | None:
        return self._last_report

    @property
    def is_busy(self) -> bool:
        return self._state is not SyncState.IDLE

    # No await between the check and the state change, so two triggers on
    # the event loop can never both claim the engine.
    def _claim(self) -> bool:
        if self._state is not SyncState.IDLE:
            return False
        self._state = SyncState.SCANNING
        return True

    async def run(
        self,
        mode: ScanMode | str,
        *,
        path_prefix: str | None = None,
        today: date | None = None,
    ) -> ScanReport | None:
        """Run one sync and wait for it. Returns None if a run was already active."""
        mode = ScanMode(mode)
        if not self._claim():
            logger.info("Skipping %s scan: a %s run is in progress", mode, self._state)
            return None
        return await self._run_claimed(mode, path_prefix=path_prefix, today=today)

    def trigger_scan(self, mode: ScanMode | str, *, path_prefix: str | None = None) -> bool:
        """Start a run in the background and return at once.

        Returns True if the run was accepted, False if another run is active.
        Completion shows up only through later count/list results and
        :attr:`last_report`.
        """
        mode = ScanMode(mode)
        if not self._claim():
            logger.info("Scan trigger %s ignored: a %s run is in progress", mode, self._state)
            return False
        coro = self._run_claimed(mode, path_prefix=path_prefix)
        try:
            task = asyncio.create_task(coro, name=f"imgindex-scan-{mode}")
        except RuntimeError:
            coro.close()
            self._state = SyncState.IDLE
            raise
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return True

    def _on_task_done(self, task: asyncio.Task[ScanReport | None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background scan crashed: %s", exc, exc_info=exc)

    async def _run_claimed(
        self,
        mode: ScanMode,
        *,
        path_prefix: str | None = None,
        today: date | None = None,
    ) -> ScanReport:
        report = ScanReport(mode=mode, started_at=now_utc())
        logger.info("Starting %s scan of %s", mode, self._images_dir)
        try:
            if mode is ScanMode.FULL:
                await self._full_scan(report)
            elif mode is ScanMode.RECENT:
                await self._recent_scan(report, today)
            elif mode is ScanMode.CHECK:
                await self._check(report, path_prefix)
            else:
                await self._fix(report)
        except (IndexWriteError, OSError) as exc:
            report.error = str(exc)
            logger.error("%s scan failed, will retry on next trigger: %s", mode, exc, exc_info=exc)
        finally:
            report.finished_at = now_utc()
            self._last_report = report
            self._state = SyncState.IDLE

        if report.ok:
            logger.info(
                "%s scan done: discovered=%d upserted=%d removed=%d fixed=%d buckets=%d",
                mode,
                report.discovered,
                report.upserted,
                report.removed,
                report.fixed,
                report.buckets,
            )
        return report

    async def _full_scan(self, report: ScanReport) -> None:
        if not self._images_dir.is_dir():
            logger.warning("Image directory does not exist: %s", self._images_dir)
        images = await asyncio.to_thread(scan_directory, self._images_dir)
        report.discovered = len(images)
        report.upserted = await self._store.batch_upsert(images)

        self._state = SyncState.RECONCILING
        report.buckets = await self._aggregator.rebuild_from_images()

    async def _recent_scan(self, report: ScanReport, today: date | None) -> None:
        dates = recent_dates(self._recent_window_days, today=today, tz_name=self._timezone)
        report.dates = dates
        images: list[ScannedImage] = []
        for day in dates:
            images.extend(await asyncio.to_thread(scan_date_directory, self._images_dir, day))
        report.discovered = len(images)
        report.upserted = await self._store.batch_upsert(images)

        self._state = SyncState.RECONCILING
        counts = await self._aggregator.refresh_dates(dates)
        report.buckets = sum(1 for count in counts.values() if count)

    async def _check(self, report: ScanReport, path_prefix: str | None) -> None:
        self._state = SyncState.RECONCILING
        report.removed = await self._store.remove_non_existent(path_prefix)
        if report.removed:
            report.buckets = await self._aggregator.rebuild_from_images()

    async def _fix(self, report: ScanReport) -> None:
        self._state = SyncState.RECONCILING
        report.fixed = await self._store.fix_path_separators()
        if report.fixed:
            report.buckets = await self._aggregator.rebuild_from_images()

    # -- periodic refresh -------------------------------------------------------

    def start_periodic(self, interval_seconds: float) -> None:
        """Run a recent-window scan every ``interval_seconds``; 0 disables it."""
        if interval_seconds <= 0 or self._periodic_task is not None:
            return
        self._periodic_task = asyncio.create_task(
            self._periodic_loop(interval_seconds), name="imgindex-periodic-scan"
        )
        logger.info("Periodic recent scan every %ss", interval_seconds)

    async def _periodic_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                report = await self.run(ScanMode.RECENT)
            except Exception:
                logger.exception("Periodic recent scan crashed")
                continue
            if report is None:
                logger.debug("Periodic recent scan skipped for this tick")

    async def stop(self) -> None:
        """Stop the periodic task and wait for in-flight runs to finish."""
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
