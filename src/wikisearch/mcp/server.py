"""wikisearch MCP server entrypoint using FastMCP.

Exposes full-text search over a MediaWiki wiki and keeps the index fresh
with a periodic, revision-gated reindex.
Run with:
  - poetry run wikisearch-mcp
  - or: python -m wikisearch.mcp.server (ensure PYTHONPATH includes ./src)
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastmcp import FastMCP

from wikisearch.config import Settings, load_settings
from wikisearch.connectors.mediawiki import MediaWikiSource
from wikisearch.connectors.scheduler import Reindexer, ReindexScheduler
from wikisearch.exceptions import ConfigError
from wikisearch.mcp.tools import register_search_tools
from wikisearch.search.index import WikiIndex

logger = logging.getLogger(__name__)


class AppState:
    """Application state shared by MCP tools."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.index: Optional[WikiIndex] = None
        self.source: Optional[MediaWikiSource] = None
        self.reindexer: Optional[Reindexer] = None
        self.scheduler: Optional[ReindexScheduler] = None

    def init(self) -> None:
        """Open the index and wire the wiki source, reindexer and scheduler."""
        wcfg = self.settings.wiki
        icfg = self.settings.index
        if not wcfg.sqlite_file:
            raise ConfigError("Wiki database is not configured. Set WIKISEARCH_WIKI__SQLITE_FILE.")
        if icfg.reindex_interval_seconds <= 0:
            raise ConfigError("WIKISEARCH_INDEX__REINDEX_INTERVAL_SECONDS must be positive.")

        self.index = WikiIndex.open_or_create(icfg.path)
        self.source = MediaWikiSource(sqlite_file=wcfg.sqlite_file, base_url=wcfg.base_url)
        self.reindexer = Reindexer(self.index, self.source)
        self.scheduler = ReindexScheduler(
            self.reindexer,
            interval=timedelta(seconds=icfg.reindex_interval_seconds),
            run_immediately=icfg.reindex_on_start,
        )
        logger.info(
            "index at %s holds %d pages (revision %d)",
            icfg.path,
            self.index.page_count(),
            self.index.revision,
        )


# Global state and server instance
_state: Optional[AppState] = None
_open_sessions = 0


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Run the reindex scheduler while at least one session is open."""
    global _open_sessions
    scheduler = _state.scheduler if _state is not None else None
    if scheduler is not None:
        scheduler.start()
    _open_sessions += 1
    try:
        yield
    finally:
        _open_sessions -= 1
        if scheduler is not None and not _open_sessions:
            scheduler.shutdown(wait=False)


mcp = FastMCP("wikisearch MCP Server", lifespan=lifespan)


# ----- Tools -----

@mcp.tool
def health() -> str:
    """Simple health check tool."""
    return "ok"


# ----- Entrypoint -----

def main() -> None:
    """Initialize state and run the MCP server."""
    global _state
    settings = load_settings()
    logging.basicConfig(
        level=settings.app.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state = AppState(settings)
    _state.init()
    # Register tools
    register_search_tools(mcp, get_state=lambda: _state)
    # Choose transport based on configuration: stdio (default), http, or sse
    transport = settings.app.transport
    if transport in ("http", "sse"):
        mcp.run(transport=transport, host=settings.app.host, port=settings.app.port)
    else:
        mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
