"""Index schema and text analysis for wiki pages.

Both analyzers are applied identically at index time and at query time
(Whoosh runs the field's analyzer over query terms), so stemming and
accent folding are symmetric.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List

import jieba
from whoosh.analysis import (
    CharsetFilter,
    IDTokenizer,
    LowercaseFilter,
    StemFilter,
    StopFilter,
    Token,
    Tokenizer,
)
from whoosh.fields import DATETIME, ID, NUMERIC, TEXT, Schema
from whoosh.support.charset import accent_map

# Tokens longer than this are dropped (base64 blobs, hashes, ...).
MAX_TOKEN_LENGTH = 32

_HAN = r"\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"
_TOKEN = re.compile(rf"(?P<cjk>[{_HAN}]+)|(?P<word>[^\W{_HAN}]+)")

jieba.setLogLevel(logging.WARNING)


class CjkTokenizer(Tokenizer):
    """Split Han runs with jieba's dictionary and everything else on non-word chars.

    Punctuation and whitespace never become tokens.
    """

    def __call__(
        self,
        value,
        positions=False,
        chars=False,
        keeporiginal=False,
        removestops=True,
        start_pos=0,
        start_char=0,
        tokenize=True,
        mode="",
        **kwargs,
    ):
        t = Token(positions, chars, removestops=removestops, mode=mode, **kwargs)
        if not tokenize:
            t.original = t.text = value
            t.boost = 1.0
            if positions:
                t.pos = start_pos
            if chars:
                t.startchar = start_char
                t.endchar = start_char + len(value)
            yield t
            return

        pos = start_pos
        for m in _TOKEN.finditer(value):
            if m.lastgroup == "cjk":
                words = ((w, m.start() + s, m.start() + e) for w, s, e in jieba.tokenize(m.group()))
            else:
                words = iter([(m.group(), m.start(), m.end())])
            for word, start, end in words:
                t.text = word
                t.boost = 1.0
                t.stopped = False
                if keeporiginal:
                    t.original = word
                if positions:
                    t.pos = pos
                    pos += 1
                if chars:
                    t.startchar = start_char + start
                    t.endchar = start_char + end
                yield t


def text_analyzer():
    """Tokenize (CJK aware) -> lowercase -> stem -> fold accents -> drop long tokens."""
    return (
        CjkTokenizer()
        | LowercaseFilter()
        | StemFilter()
        | CharsetFilter(accent_map)
        | StopFilter(stoplist=None, minsize=1, maxsize=MAX_TOKEN_LENGTH)
    )


def keyword_analyzer():
    """Whole value as one token -> lowercase -> stem -> fold accents."""
    return IDTokenizer() | LowercaseFilter() | StemFilter() | CharsetFilter(accent_map)


@dataclass(frozen=True)
class Fields:
    """Field names of the page schema, resolved once for all callers."""

    id: str = "id"
    title: str = "title"
    text: str = "text"
    title_date: str = "title_date"
    updated: str = "updated"
    namespace: str = "namespace"
    url: str = "url"
    category: str = "category"


FIELDS = Fields()


def make_schema() -> Schema:
    text = text_analyzer()
    keyword = keyword_analyzer()
    return Schema(
        **{
            FIELDS.id: NUMERIC(int, bits=64, stored=True, unique=True, sortable=True),
            FIELDS.title: TEXT(stored=True, analyzer=text, field_boost=1.8),
            FIELDS.text: TEXT(stored=True, analyzer=text),
            FIELDS.title_date: DATETIME(stored=True, sortable=True),
            FIELDS.updated: DATETIME(stored=True, sortable=True),
            FIELDS.namespace: TEXT(stored=True, analyzer=keyword, phrase=False),
            FIELDS.url: ID(stored=True),
            # Multi-valued: indexed from a pre-analyzed token list, not stored.
            FIELDS.category: TEXT(analyzer=keyword, phrase=False),
        }
    )


def analyze_keywords(values: Iterable[str]) -> List[str]:
    """Run the keyword analyzer over each value, for multi-valued fields."""
    analyzer = keyword_analyzer()
    return [t.text for value in values for t in analyzer(value) if t.text]
