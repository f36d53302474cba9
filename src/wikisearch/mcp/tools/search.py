"""Wiki search tools for FastMCP.

Query the index, force a reindex, and report index status.
"""

from __future__ import annotations

import asyncio
import html
from typing import Any, Callable, Dict, List, Optional

from fastmcp import FastMCP

from wikisearch.search.query import QueryOptions
from wikisearch.search.results import PageMatchEntry, search
from wikisearch.wiki.page import parse_date


def _entry_payload(entry: PageMatchEntry, prefix: str, suffix: str) -> Dict[str, Any]:
    return {
        "namespace": entry.namespace,
        "title_html": entry.title.highlight(prefix, suffix, escape=html.escape),
        "text_html": entry.text.highlight(prefix, suffix, escape=html.escape),
        "url": entry.url,
        "page_id": entry.page_id,
    }


def register_search_tools(mcp: FastMCP, get_state: Callable[[], Any]) -> None:
    """Register wiki search tools on the given FastMCP instance.

    Reads the shared index and reindexer from state (state.index, state.reindexer).
    """

    def _require(attr: str) -> Any:
        state = get_state()
        value = getattr(state, attr, None)
        if value is None:
            raise RuntimeError(
                "Wiki search is not configured. Set WIKISEARCH_WIKI__SQLITE_FILE."
            )
        return value

    @mcp.tool
    async def wiki_search(
        q: str,
        offset: int = 0,
        count: int = 10,
        snippet_length: Optional[int] = None,
        date_before: str = "",
        date_after: str = "",
        fuzzy: bool = False,
        snippet_prefix: str = "<b>",
        snippet_suffix: str = "</b>",
    ) -> Dict[str, Any]:
        """Full-text search over wiki pages.

        Parameters
        ----------
        q: str
            Query string. Terms are OR-ed; use quotes for phrases, AND/OR/NOT
            and parentheses for boolean queries. Empty matches every page.
        offset: int
            Number of hits to skip (for paging).
        count: int
            Maximum number of hits to return.
        snippet_length: int | None
            Maximum snippet length in characters (defaults to the server setting).
        date_before / date_after: str
            Inclusive YYYY-MM-DD bounds on the date in the page title. When
            either is set, results are ordered newest first instead of by score.
        fuzzy: bool
            Also match terms within one edit, or as prefixes.
        snippet_prefix / snippet_suffix: str
            Markers placed around matched text in title_html and text_html.
        """
        index = _require("index")
        if snippet_length is None:
            snippet_length = get_state().settings.index.snippet_length
        options = QueryOptions(
            offset=offset,
            count=count,
            snippet_length=snippet_length,
            date_before=parse_date(date_before),
            date_after=parse_date(date_after),
            fuzzy=fuzzy,
        )
        result = await asyncio.to_thread(search, index, q, options)
        entries: List[Dict[str, Any]] = [
            _entry_payload(entry, snippet_prefix, snippet_suffix) for entry in result.entries
        ]
        return {
            "entries": entries,
            "remaining": result.remaining,
            "new_offset": result.new_offset,
            "elapsed": result.elapsed,
        }

    @mcp.tool
    async def wiki_reindex() -> Dict[str, Any]:
        """Rebuild the index from the wiki now, regardless of its revision."""
        reindexer = _require("reindexer")
        report = await reindexer.reindex(force=True)
        return {"page_count": report.page_count, "elapsed": report.elapsed}

    @mcp.tool
    async def wiki_index_info() -> Dict[str, Any]:
        """Report the number of indexed pages and the wiki revision they reflect."""
        index = _require("index")
        page_count = await asyncio.to_thread(index.page_count)
        return {"page_count": page_count, "revision": index.revision}
