from datetime import date, datetime, timezone

import pytest

from wikisearch.exceptions import InvalidDate
from wikisearch.wiki.page import (
    Namespace,
    page_url,
    parse_date,
    parse_title_date,
    parse_wiki_timestamp,
)


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Jan 2, 2023 meeting", date(2023, 1, 2)),
        ("2023-01-02_Notes", date(2023, 1, 2)),
        ("2023年01月02日 会议", date(2023, 1, 2)),
        ("2023-05", date(2023, 5, 1)),
        ("2023 Jan", date(2023, 1, 1)),
        ("January 2, 2023", date(2023, 1, 2)),
        ("jan 2, 2023", date(2023, 1, 2)),
        ("SEPTEMBER 30, 2021 retro", date(2021, 9, 30)),
        ("Sept 3, 2021", date(2021, 9, 3)),
        ("2023-1-2 x", date(2023, 1, 2)),
        ("2023-7", date(2023, 7, 1)),
        ("2023 december", date(2023, 12, 1)),
        ("2020", date(2020, 1, 1)),
        ("Dogs", None),
        ("1234 things", None),
        ("Cats 2023", None),
    ],
)
def test_parse_title_date(title: str, expected) -> None:
    assert parse_title_date(title) == expected


def test_parse_date_bounds() -> None:
    assert parse_date("") is None
    assert parse_date("   ") is None
    assert parse_date(None) is None
    assert parse_date("2020-01-01") == date(2020, 1, 1)
    for bad in ("2020-13-01", "yesterday", "1600-01-01", "2020/01/01"):
        with pytest.raises(InvalidDate):
            parse_date(bad)


def test_parse_wiki_timestamp() -> None:
    assert parse_wiki_timestamp("20230102030405") == datetime(
        2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc
    )
    with pytest.raises(InvalidDate):
        parse_wiki_timestamp("not a timestamp")


def test_namespaces() -> None:
    assert Namespace(0).name == "Main"
    assert str(Namespace(14)) == "Category"
    assert Namespace(999).name == "Other(999)"
    assert Namespace(999).prefix == ""


def test_page_url() -> None:
    base = "https://wiki.example.org/index.php/"
    assert page_url(base, Namespace(0), "Main Page") == base + "Main_Page"
    assert page_url(base, Namespace(14), "Foo bar") == base + "Category:Foo_bar"
