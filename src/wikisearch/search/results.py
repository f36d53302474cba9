"""Execute query plans against an index snapshot and assemble result pages."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from whoosh.highlight import ContextFragmenter, Formatter, Highlighter
from whoosh.searching import Hit, Searcher

from wikisearch.search.highlight import MatchSnippet, Snippet
from wikisearch.search.index import WikiIndex
from wikisearch.search.query import QueryOptions, QueryPlan, plan
from wikisearch.search.schema import FIELDS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PageMatchEntry:
    """One hit; `score` is None when results are ordered by date."""

    namespace: str
    title: MatchSnippet
    text: MatchSnippet
    url: str
    page_id: int
    score: Optional[float] = None


@dataclass(slots=True)
class PageMatchResult:
    """A page of hits.

    `remaining` counts hits at or after the requested offset. `new_offset` is
    the offset of the next page, or None when this page is the last one.
    `elapsed` is the query wall time in seconds.
    """

    entries: List[PageMatchEntry] = field(default_factory=list)
    remaining: int = 0
    new_offset: Optional[int] = None
    elapsed: float = 0.0


class SnippetFormatter(Formatter):
    """Whoosh formatter returning the best fragment as a `Snippet` instead of markup.

    The fragment is cut to at most `max_length` characters.
    """

    def __init__(self, max_length: int) -> None:
        self.max_length = max_length

    def format(self, fragments, replace=False):
        if not fragments:
            return Snippet()
        fragment = fragments[0]
        start = fragment.startchar
        end = min(fragment.endchar, start + self.max_length)
        ranges = [
            (max(t.startchar, start) - start, min(t.endchar, end) - start)
            for t in fragment.matches
            if t.startchar is not None and t.startchar < end and t.endchar > start
        ]
        return Snippet(fragment=fragment.text[start:end], highlighted=sorted(ranges))

    def __call__(self, text, fragments):
        return self.format(fragments)


def _highlighter(snippet_length: int) -> Highlighter:
    return Highlighter(
        fragmenter=ContextFragmenter(maxchars=snippet_length, surround=max(snippet_length // 2, 1)),
        formatter=SnippetFormatter(snippet_length),
        always_retokenize=True,
    )


def _match_snippet(highlighter: Highlighter, hit: Hit, fieldname: str, source: str, max_length: int) -> MatchSnippet:
    snippet = highlighter.highlight_hit(hit, fieldname, text=source, top=1) if source else Snippet()
    if not isinstance(snippet, Snippet):
        snippet = Snippet()
    return MatchSnippet(source=source, snippet=snippet, max_length=max_length)


def execute(
    searcher: Searcher,
    query_plan: QueryPlan,
    options: QueryOptions,
    *,
    clock: Callable[[], float] = time.perf_counter,
) -> PageMatchResult:
    """Run the plan once, returning the requested page and the total hit count."""
    started = clock()
    limit = options.offset + options.count
    logger.debug("searching %d docs for %s", searcher.doc_count(), query_plan.query)

    if query_plan.date_ordered:
        results = searcher.search(
            query_plan.query, limit=limit, sortedby=FIELDS.title_date, reverse=True
        )
    else:
        # optimize=False: the collector visits every match, so the total is exact.
        results = searcher.search(query_plan.query, limit=limit, optimize=False)
    total = len(results)

    highlighter = _highlighter(options.snippet_length)
    entries: List[PageMatchEntry] = []
    for hit in results[options.offset : limit]:
        stored = hit.fields()
        title = stored.get(FIELDS.title, "")
        text = stored.get(FIELDS.text, "")
        entries.append(
            PageMatchEntry(
                namespace=stored.get(FIELDS.namespace, ""),
                title=_match_snippet(highlighter, hit, FIELDS.title, title, options.snippet_length),
                text=_match_snippet(highlighter, hit, FIELDS.text, text, options.snippet_length),
                url=stored.get(FIELDS.url, ""),
                page_id=stored.get(FIELDS.id, 0),
                score=None if query_plan.date_ordered else hit.score,
            )
        )

    consumed = options.offset + len(entries)
    return PageMatchResult(
        entries=entries,
        remaining=max(total - options.offset, 0),
        new_offset=consumed if consumed < total else None,
        elapsed=clock() - started,
    )


def search(index: WikiIndex, query_string: str, options: Optional[QueryOptions] = None) -> PageMatchResult:
    """Plan and execute a query against a fresh snapshot of `index`."""
    options = options or QueryOptions()
    query_plan = plan(index.schema, query_string, options)
    with index.snapshot() as searcher:
        return execute(searcher, query_plan, options)
