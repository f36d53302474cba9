import pytest

from wikisearch.parsers.textify import textify


@pytest.mark.parametrize(
    "markup, expected",
    [
        ("", ""),
        ("plain text", "plain text"),
        ("{{a|b=c}}", "{{a|b=c}}"),
        ("{{a|b|c}}", "{{a|b|c}}"),
        ("{{a}}", "{{a}}"),
        ("{{a|1=b}}", "{{a|1=b}}"),
        ("[[Target|label]]", "label(Target)"),
        ("[[Target]]", "Target(Target)"),
        ("[[:Category:Foo]]", "Category:Foo(Category:Foo)"),
        ("[https://example.org Example]", "Example(https://example.org)"),
        ("[[File:Cat.jpg|thumb|A cat]]", "IMAGE: File:Cat.jpg A cat"),
        ("[[File:Cat.jpg|thumb|200px]]", "IMAGE: File:Cat.jpg"),
        ("[[File:Cat.jpg]]", "IMAGE: File:Cat.jpg"),
        ("'''bold''' and ''italic''", "'''bold''' and ''italic''"),
        ("__NOTOC__", "__NOTOC__"),
        ("&amp; &lt;", "& <"),
        ("a<!-- note -->b", "a<!-- note -->b"),
        ("[[Category:Foo]]", ""),
        ("{{{1|x}}}", ""),
        ("a<br/>b", "ab"),
        ("<nowiki>[[x]]</nowiki>", "[[x]]"),
        ("<pre>code</pre>", ""),
        ("----", ""),
    ],
)
def test_textify_inline(markup: str, expected: str) -> None:
    assert textify(markup) == expected


def test_redirect() -> None:
    assert textify("#REDIRECT [[Other page]]") == "REDIRECT: Other page"
    assert textify("#redirect [[Other page|label]]") == "REDIRECT: Other page"
    text = textify("#REDIRECT [[Other page]]\n[[Category:Moved]] see [[Elsewhere]]")
    assert text.startswith("REDIRECT: Other page\n")
    assert "Elsewhere(Elsewhere)" in text


def test_headings_and_paragraphs() -> None:
    markup = "= a =\nb\n\n= c =\nd"
    assert textify(markup) == markup
    assert textify("== Title ==\ntext") == "== Title ==\ntext"
    assert textify("==  Spaced  ==\n") == "== Spaced ==\n"
    assert textify("== [[Link]] ==\n") == "== Link(Link) ==\n"


def test_blank_line_runs_collapse_to_one_paragraph_break() -> None:
    assert textify("a\n\n\nb") == "a\n\nb"
    assert textify("a\nb") == "a\nb"


def test_lists_render_one_item_per_line() -> None:
    assert textify("* one\n* two") == "one\ntwo"
    assert textify("# first\n# second\nafter") == "first\nsecond\nafter"
    text = textify("* parent\n** child")
    assert text.splitlines() == ["parent", "child"]


def test_table_renders_rows_as_cells() -> None:
    markup = "{|\n|-\n| a || b\n|-\n| c || d\n|}"
    assert textify(markup) == "a | b\nc | d"


def test_table_caption_comes_first() -> None:
    text = textify("{|\n|+ Caption\n|-\n| a || b\n|}")
    lines = text.splitlines()
    assert lines[0].endswith("Caption")
    assert lines[-1] == "a | b"


def test_space_indented_lines_are_preformatted() -> None:
    assert textify("text\n code line\nmore") == "text\n\nmore"
    assert textify(" code [[Link]]\nafter") == "\nafter"


def test_template_parameters_are_textified() -> None:
    assert textify("{{Infobox|name=[[Lojban]]|year=1987}}") == "{{Infobox|name=Lojban(Lojban)|year=1987}}"


def test_link_and_category() -> None:
    assert textify("see [[Main Page|home]] [[Category:Docs]]") == "see home(Main Page) "


@pytest.mark.parametrize(
    "markup",
    [
        "{{a|b",
        "[[a",
        "[[",
        "}}]]",
        "{|\n| unterminated",
        "<!-- never closed",
        "'''''",
        "=",
        "=====",
        "&bogus;",
        "{{" * 100,
        "[[" * 100 + "]]" * 10,
        "<ref>unclosed",
        "* \n#\n;:",
    ],
)
def test_malformed_markup_never_raises(markup: str) -> None:
    assert isinstance(textify(markup), str)


def test_unbalanced_brackets_fall_back_to_text() -> None:
    assert textify("{{a|b") == "{{a|b"
    assert textify("[[a") == "[[a"


def test_deep_nesting_is_bounded() -> None:
    markup = "{{a|" * 200 + "x" + "}}" * 200
    text = textify(markup)
    assert text.startswith("{{a|")
    assert "x" in text
