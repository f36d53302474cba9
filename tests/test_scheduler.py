import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from wikisearch.connectors.base_connector import WikiSource
from wikisearch.connectors.scheduler import (
    JOB_ID,
    Reindexer,
    ReindexScheduler,
    ReindexState,
)
from wikisearch.exceptions import SourceUnavailable
from wikisearch.search.index import WikiIndex
from wikisearch.wiki.page import Page


class FakeSource(WikiSource):
    def __init__(self, revision: int = 1) -> None:
        self.revision = revision
        self.pages = [
            Page(id=1, title="Cats", text="Cats are mammals", updated=datetime(2023, 1, 1, tzinfo=timezone.utc)),
            Page(id=2, title="Dogs", text="Dogs are mammals", updated=datetime(2023, 1, 1, tzinfo=timezone.utc)),
        ]
        self.list_calls = 0
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def latest_revision(self) -> int:
        if self.error is not None:
            raise self.error
        return self.revision

    async def list_pages(self) -> List[Page]:
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return list(self.pages)


@pytest.fixture()
def index(tmp_path: Path) -> WikiIndex:
    return WikiIndex.open_or_create(tmp_path)


@pytest.mark.asyncio
async def test_reindex_is_gated_on_revision(index: WikiIndex) -> None:
    source = FakeSource(revision=3)
    reindexer = Reindexer(index, source)

    report = await reindexer.reindex()
    assert report is not None
    assert report.page_count == 2
    assert report.revision == 3
    assert report.elapsed >= 0
    assert index.revision == 3

    # Unchanged wiki: nothing is fetched.
    assert await reindexer.reindex() is None
    assert source.list_calls == 1

    source.revision = 4
    assert (await reindexer.reindex()).revision == 4
    assert source.list_calls == 2


@pytest.mark.asyncio
async def test_forced_reindex_runs_even_when_up_to_date(index: WikiIndex) -> None:
    source = FakeSource(revision=1)
    reindexer = Reindexer(index, source)
    await reindexer.reindex()
    report = await reindexer.reindex(force=True)
    assert report is not None
    assert report.page_count == 2
    assert source.list_calls == 2


@pytest.mark.asyncio
async def test_manual_reindex_surfaces_source_errors(index: WikiIndex) -> None:
    source = FakeSource()
    source.error = SourceUnavailable("database is gone")
    reindexer = Reindexer(index, source)
    with pytest.raises(SourceUnavailable):
        await reindexer.reindex(force=True)
    assert index.revision == 0


@pytest.mark.asyncio
async def test_reindex_passes_are_serialized(index: WikiIndex) -> None:
    source = FakeSource()
    source.gate = asyncio.Event()
    reindexer = Reindexer(index, source)

    first = asyncio.create_task(reindexer.reindex(force=True))
    second = asyncio.create_task(reindexer.reindex(force=True))
    await asyncio.sleep(0.05)
    assert reindexer.busy
    # The second pass waits for the lock instead of fetching in parallel.
    assert source.list_calls == 1

    source.gate.set()
    reports = await asyncio.gather(first, second)
    assert [r.page_count for r in reports] == [2, 2]
    assert source.list_calls == 2


@pytest.mark.asyncio
async def test_tick_swallows_errors(index: WikiIndex) -> None:
    source = FakeSource()
    source.error = SourceUnavailable("database is gone")
    scheduler = ReindexScheduler(Reindexer(index, source))

    assert await scheduler.tick() is None
    assert scheduler.state is ReindexState.IDLE
    assert index.revision == 0

    source.error = None
    report = await scheduler.tick()
    assert report is not None
    assert scheduler.last_report == report
    assert index.page_count() == 2


@pytest.mark.asyncio
async def test_tick_while_reindexing_is_skipped(index: WikiIndex) -> None:
    source = FakeSource()
    source.gate = asyncio.Event()
    scheduler = ReindexScheduler(Reindexer(index, source))

    running = asyncio.create_task(scheduler.tick())
    await asyncio.sleep(0.05)
    assert scheduler.state is ReindexState.REINDEXING

    assert await scheduler.tick() is None
    assert source.list_calls == 1

    source.gate.set()
    report = await running
    assert report is not None
    assert scheduler.state is ReindexState.IDLE


@pytest.mark.asyncio
async def test_start_adds_interval_job(index: WikiIndex) -> None:
    aps = AsyncIOScheduler()
    scheduler = ReindexScheduler(
        Reindexer(index, FakeSource()),
        interval=timedelta(minutes=30),
        scheduler=aps,
        run_immediately=False,
    )
    scheduler.start()
    try:
        assert scheduler.started
        job = aps.get_job(JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=30)
        assert job.max_instances == 1
        assert job.coalesce is True
        # Starting twice is a no-op.
        scheduler.start()
        assert len(aps.get_jobs()) == 1
    finally:
        scheduler.shutdown(wait=False)
    assert not scheduler.started


@pytest.mark.asyncio
async def test_run_immediately_reindexes_on_start(index: WikiIndex) -> None:
    scheduler = ReindexScheduler(
        Reindexer(index, FakeSource(revision=5)),
        scheduler=AsyncIOScheduler(),
    )
    scheduler.start()
    try:
        for _ in range(100):
            if index.revision == 5:
                break
            await asyncio.sleep(0.05)
    finally:
        scheduler.shutdown(wait=False)
    assert index.revision == 5
    assert index.page_count() == 2


def test_interval_must_be_positive(index: WikiIndex) -> None:
    with pytest.raises(ValueError):
        ReindexScheduler(Reindexer(index, FakeSource()), interval=timedelta(0))
