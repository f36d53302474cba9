"""Page records produced by the wiki source and consumed by the index."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from wikisearch.exceptions import InvalidDate

# code -> (name, url prefix)
_NAMESPACES: Dict[int, Tuple[str, str]] = {
    0: ("Main", ""),
    1: ("Talk", "Talk:"),
    2: ("User", "User:"),
    3: ("User talk", "User_talk:"),
    4: ("Project", "Project:"),
    5: ("Project talk", "Project_talk:"),
    6: ("File", "File:"),
    7: ("File talk", "File_talk:"),
    8: ("MediaWiki", "MediaWiki:"),
    9: ("MediaWiki talk", "MediaWiki_talk:"),
    10: ("Template", "Template:"),
    11: ("Template talk", "Template_talk:"),
    12: ("Help", "Help:"),
    13: ("Help talk", "Help_talk:"),
    14: ("Category", "Category:"),
    15: ("Category talk", "Category_talk:"),
    828: ("Module", "Module:"),
    829: ("Module talk", "Module_talk:"),
    -1: ("Special", "Special:"),
    -2: ("Media", "Media:"),
}


@dataclass(frozen=True, slots=True)
class Namespace:
    """MediaWiki namespace, identified by its numeric code."""

    code: int = 0

    @property
    def name(self) -> str:
        known = _NAMESPACES.get(self.code)
        return known[0] if known else f"Other({self.code})"

    @property
    def prefix(self) -> str:
        known = _NAMESPACES.get(self.code)
        return known[1] if known else ""

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True)
class Page:
    """A wiki page as read from the source database."""

    id: int
    title: str
    text: str
    updated: datetime
    namespace: Namespace = Namespace(0)
    url: str = ""
    title_date: Optional[date] = None
    categories: List[str] = field(default_factory=list)


_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
    "|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec"
)
_MONTH_NAME = re.compile(_MONTHS, re.IGNORECASE)

# Tried in order against the start of a title; trailing text is ignored.
_TITLE_DATE_FORMATS: List[Tuple[re.Pattern[str], str]] = [
    # Jan 2, 2023 / january 02, 2023
    (re.compile(rf"(?:{_MONTHS}) \d{{1,2}}, \d{{4}}", re.IGNORECASE), "%b %d, %Y"),
    # 2023-01-02 / 2023-1-2
    (re.compile(r"\d{4}-\d{1,2}-\d{1,2}"), "%Y-%m-%d"),
    # 2023年01月02日
    (re.compile(r"\d{4}年\d{1,2}月\d{1,2}日"), "%Y年%m月%d日"),
    # 2023-01 (e.g. category)
    (re.compile(r"\d{4}-\d{1,2}"), "%Y-%m"),
    # 2023 Jan / 2023 January
    (re.compile(rf"\d{{4}} (?:{_MONTHS})", re.IGNORECASE), "%Y %b"),
    # 2023 (e.g. category)
    (re.compile(r"\d{4}"), "%Y"),
]

# Years a title date may plausibly carry; anything else is a mismatch.
_TITLE_YEARS = range(1678, 2263)
_QUERY_YEARS = range(1700, 2201)

_WIKI_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def parse_title_date(title: str) -> Optional[date]:
    """Parse a calendar date from the beginning of a page title, if any."""
    value = title.replace("_", " ")
    for pattern, fmt in _TITLE_DATE_FORMATS:
        m = pattern.match(value)
        if not m:
            continue
        try:
            # strptime's %b only takes abbreviations.
            text = _MONTH_NAME.sub(lambda name: name.group(0)[:3], m.group(0))
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if parsed.year not in _TITLE_YEARS:
            continue
        return parsed
    return None


def parse_wiki_timestamp(value: str) -> datetime:
    """Parse a MediaWiki `YYYYMMDDHHMMSS` timestamp as UTC."""
    try:
        parsed = datetime.strptime(value, _WIKI_TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise InvalidDate(value) from exc
    return parsed.replace(tzinfo=timezone.utc)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a `YYYY-MM-DD` date bound; an empty value means no bound."""
    if value is None or not value.strip():
        return None
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidDate(value) from exc
    if parsed.year not in _QUERY_YEARS:
        raise InvalidDate(value)
    return parsed


def page_url(base: str, namespace: Namespace, title: str) -> str:
    """Build the full URL of a page from the wiki's base URL."""
    return f"{base}{namespace.prefix}{title.replace(' ', '_')}"
