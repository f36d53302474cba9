"""Turn a user query string and options into an executable Whoosh query."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from whoosh.fields import Schema
from whoosh.qparser import MultifieldParser, OrGroup
from whoosh.qparser.common import QueryParserError
from whoosh.query import And, DateRange, Every, FuzzyTerm, Or, Prefix, Query, Term

from wikisearch.exceptions import InvalidQuery
from wikisearch.search.index import to_datetime
from wikisearch.search.schema import FIELDS

_TEXT_FIELDS = (FIELDS.title, FIELDS.text)


@dataclass(slots=True)
class QueryOptions:
    """Paging, snippet and filter options of a single query.

    `date_before` / `date_after` are inclusive bounds on the title date.
    """

    offset: int = 0
    count: int = 10
    snippet_length: int = 100
    date_before: Optional[date] = None
    date_after: Optional[date] = None
    fuzzy: bool = False

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise InvalidQuery(f"offset must not be negative, got {self.offset}")
        if self.count <= 0:
            raise InvalidQuery(f"count must be positive, got {self.count}")
        if self.snippet_length <= 0:
            raise InvalidQuery(f"snippet_length must be positive, got {self.snippet_length}")

    @property
    def has_date_filter(self) -> bool:
        return self.date_before is not None or self.date_after is not None


@dataclass(slots=True)
class QueryPlan:
    """Executable query; date-filtered plans are ordered by title date."""

    query: Query
    date_ordered: bool = False


# Same literal-term syntax as whoosh.qparser.SingleQuotePlugin.
_SINGLE_QUOTED = re.compile(r"(?:^|(?<=\W))'.*?'(?=\s|\]|[)}]|$)")


def _check_syntax(query_string: str) -> None:
    depth = 0
    quoted = False
    pos = 0
    while pos < len(query_string):
        ch = query_string[pos]
        pos += 1
        if ch == "'" and not quoted:
            m = _SINGLE_QUOTED.match(query_string, pos - 1)
            if m:
                pos = m.end()
        elif ch == '"':
            quoted = not quoted
        elif quoted:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise InvalidQuery(f"unbalanced parenthesis in {query_string!r}")
    if quoted:
        raise InvalidQuery(f"unterminated phrase in {query_string!r}")
    if depth:
        raise InvalidQuery(f"unbalanced parenthesis in {query_string!r}")


def _fuzzy(q: Query) -> Query:
    # Each analyzed text term also matches within edit distance 1, or as a prefix.
    if type(q) is Term and q.fieldname in _TEXT_FIELDS:
        return Or(
            [
                q,
                FuzzyTerm(q.fieldname, q.text, boost=q.boost, maxdist=1, prefixlength=0),
                Prefix(q.fieldname, q.text, boost=q.boost),
            ]
        )
    return q


def parse_text_query(schema: Schema, query_string: str, *, fuzzy: bool = False) -> Query:
    """Parse against title and text. An empty string matches every page."""
    if not query_string.strip():
        return Every()
    _check_syntax(query_string)
    parser = MultifieldParser(list(_TEXT_FIELDS), schema=schema, group=OrGroup)
    try:
        q = parser.parse(query_string)
    except QueryParserError as exc:
        raise InvalidQuery(str(exc)) from exc
    if fuzzy:
        q = q.accept(_fuzzy)
    return q


def plan(schema: Schema, query_string: str, options: QueryOptions) -> QueryPlan:
    """Build the text query, intersected with a title date range when bounds are set."""
    text_query = parse_text_query(schema, query_string, fuzzy=options.fuzzy)
    if not options.has_date_filter:
        return QueryPlan(text_query)

    start = to_datetime(options.date_after) if options.date_after else None
    end = to_datetime(options.date_before) if options.date_before else None
    date_range = DateRange(FIELDS.title_date, start, end)
    return QueryPlan(And([text_query, date_range]), date_ordered=True)
