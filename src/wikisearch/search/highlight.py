"""Snippet data and highlight rendering.

A snippet is a window of a stored field plus the character ranges inside
that window which matched the query. Ranges may overlap; they are merged
before markers are inserted so a marker never opens inside another one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

Range = Tuple[int, int]


@dataclass(slots=True)
class Snippet:
    """A window of field text and the highlighted half-open ranges inside it."""

    fragment: str = ""
    highlighted: List[Range] = field(default_factory=list)


@dataclass(slots=True)
class MatchSnippet:
    """Snippet of one field of one hit, with the full field value for fallback."""

    source: str
    snippet: Snippet
    max_length: int

    def highlight(
        self, prefix: str, suffix: str, *, escape: Optional[Callable[[str], str]] = None
    ) -> str:
        return highlight(self, prefix, suffix, escape=escape)


def merge_ranges(ranges: Iterable[Range]) -> List[Range]:
    """Coalesce overlapping ranges; the result is sorted and pairwise disjoint."""
    merged: List[Range] = []
    for start, end in sorted(ranges):
        if merged and start < merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def highlight(
    match: MatchSnippet,
    prefix: str,
    suffix: str,
    *,
    escape: Optional[Callable[[str], str]] = None,
) -> str:
    """Render the snippet with `prefix`/`suffix` around every matched range.

    Without any matched range the first `max_length` characters of the full
    field value are returned unmarked. `escape`, when given, is applied to
    the text pieces but not to the markers.
    """
    esc = escape or (lambda s: s)
    ranges = merge_ranges(match.snippet.highlighted)
    if not ranges:
        return esc(match.source[: match.max_length])

    fragment = match.snippet.fragment
    out: List[str] = []
    index = 0
    for start, end in ranges:
        out.append(esc(fragment[index:start]))
        out.append(prefix)
        out.append(esc(fragment[start:end]))
        out.append(suffix)
        index = end
    out.append(esc(fragment[index:]))
    return "".join(out)
