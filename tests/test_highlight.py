import html

from wikisearch.search.highlight import MatchSnippet, Snippet, highlight, merge_ranges


def _match(fragment: str, ranges, source: str = "", max_length: int = 100) -> MatchSnippet:
    return MatchSnippet(
        source=source or fragment,
        snippet=Snippet(fragment=fragment, highlighted=list(ranges)),
        max_length=max_length,
    )


def test_merge_ranges() -> None:
    assert merge_ranges([(0, 5), (3, 8), (10, 12)]) == [(0, 8), (10, 12)]
    assert merge_ranges([(10, 12), (0, 5)]) == [(0, 5), (10, 12)]
    assert merge_ranges([(0, 10), (2, 3)]) == [(0, 10)]
    # Touching ranges stay separate.
    assert merge_ranges([(0, 5), (5, 8)]) == [(0, 5), (5, 8)]
    assert merge_ranges([]) == []


def test_merged_ranges_are_sorted_and_disjoint() -> None:
    ranges = [(7, 9), (1, 4), (3, 6), (8, 12), (20, 21), (0, 2)]
    merged = merge_ranges(ranges)
    assert merged == sorted(merged)
    for (_, end), (start, _) in zip(merged, merged[1:]):
        assert end <= start


def test_highlight_overlapping_ranges() -> None:
    match = _match("abcdefghijklmn", [(0, 5), (3, 8), (10, 12)])
    assert highlight(match, "<", ">") == "<abcdefgh>ij<kl>mn"


def test_highlight_single_match() -> None:
    match = _match("Cats are mammals", [(9, 16)])
    assert match.highlight("<b>", "</b>") == "Cats are <b>mammals</b>"


def test_no_ranges_falls_back_to_source_prefix() -> None:
    source = "x" * 50
    match = _match("", [], source=source, max_length=10)
    rendered = highlight(match, "<b>", "</b>")
    assert rendered == "x" * 10
    assert "<b>" not in rendered


def test_fallback_is_never_longer_than_source() -> None:
    match = _match("", [], source="short", max_length=100)
    assert highlight(match, "[", "]") == "short"


def test_escape_applies_to_text_but_not_markers() -> None:
    match = _match("a<b & c", [(0, 1)])
    assert highlight(match, "<em>", "</em>", escape=html.escape) == "<em>a</em>&lt;b &amp; c"

    fallback = _match("", [], source="<script>", max_length=100)
    assert highlight(fallback, "<em>", "</em>", escape=html.escape) == "&lt;script&gt;"
