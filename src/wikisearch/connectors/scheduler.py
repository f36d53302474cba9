"""Revision-gated reindexing and its APScheduler-based periodic driver.

`Reindexer` rebuilds the index only when the wiki has a revision newer than
the one the index was built from (or when forced). `ReindexScheduler` runs it
on an interval; a tick arriving while a pass is still running is skipped.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wikisearch.connectors.base_connector import WikiSource
from wikisearch.search.index import WikiIndex

logger = logging.getLogger(__name__)

JOB_ID = "wikisearch-reindex"


@dataclass(frozen=True, slots=True)
class ReindexReport:
    """Outcome of a completed pass; `elapsed` is in seconds."""

    page_count: int
    elapsed: float
    revision: int


class Reindexer:
    """Rebuilds a `WikiIndex` from a `WikiSource`.

    Passes are serialized: a scheduled pass and a manual one never overlap,
    and the source is only queried by one pass at a time.
    """

    def __init__(
        self,
        index: WikiIndex,
        source: WikiSource,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.index = index
        self.source = source
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def reindex(self, *, force: bool = False) -> Optional[ReindexReport]:
        """Rebuild the index if the wiki changed (or `force`); None when skipped.

        Raises `SourceUnavailable` or `StorageError`; the previous index stays
        searchable in both cases.
        """
        async with self._lock:
            started = self._clock()
            revision = await self.source.latest_revision()
            if not force and not self.index.requires_reindex(revision):
                logger.debug(
                    "index is up to date (index revision %d, wiki revision %d)",
                    self.index.revision,
                    revision,
                )
                return None

            pages = await self.source.list_pages()
            count = await asyncio.to_thread(self.index.reindex, pages, revision)
            elapsed = self._clock() - started
            logger.info(
                "reindexed %d of %d pages at revision %d in %.2fs",
                count,
                len(pages),
                revision,
                elapsed,
            )
            return ReindexReport(page_count=count, elapsed=elapsed, revision=revision)


class ReindexState(enum.Enum):
    IDLE = "idle"
    REINDEXING = "reindexing"


class ReindexScheduler:
    """Schedules periodic runs of `Reindexer.reindex` using AsyncIOScheduler."""

    def __init__(
        self,
        reindexer: Reindexer,
        *,
        interval: timedelta = timedelta(hours=1),
        scheduler: Optional[AsyncIOScheduler] = None,
        run_immediately: bool = True,
    ) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.reindexer = reindexer
        self.interval = interval
        self.run_immediately = run_immediately
        self._scheduler = scheduler
        self._state = ReindexState.IDLE
        self._started = False
        self.last_report: Optional[ReindexReport] = None

    @property
    def state(self) -> ReindexState:
        return self._state

    @property
    def started(self) -> bool:
        return self._started

    async def tick(self) -> Optional[ReindexReport]:
        """Run one revision-gated pass unless one is already in flight.

        Failures are logged and swallowed so the next tick retries.
        """
        if self._state is ReindexState.REINDEXING:
            logger.warning("previous reindex still running, skipping tick")
            return None
        self._state = ReindexState.REINDEXING
        try:
            report = await self.reindexer.reindex()
        except Exception as exc:
            logger.warning("scheduled reindex failed: %s", exc)
            return None
        finally:
            self._state = ReindexState.IDLE
        if report is not None:
            self.last_report = report
        return report

    def start(self) -> None:
        """Add the interval job and start the underlying scheduler."""
        if self._started:
            return
        if self._scheduler is None:
            # Bound to the loop that runs the jobs, so only create it once one is running.
            self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        trigger = IntervalTrigger(seconds=self.interval.total_seconds())
        kwargs = {}
        if self.run_immediately:
            kwargs["next_run_time"] = datetime.now()
        self._scheduler.add_job(
            self.tick,
            trigger=trigger,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **kwargs,
        )
        self._scheduler.start(paused=False)
        self._started = True
        logger.info("reindex scheduled every %s", self.interval)

    def shutdown(self, *, wait: bool = True) -> None:
        """Shut down the scheduler."""
        if self._started:
            self._scheduler.shutdown(wait=wait)
            self._started = False
            logger.info("reindex scheduler stopped")
