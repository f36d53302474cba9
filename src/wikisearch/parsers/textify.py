"""Flatten wikitext into indexable plain text.

Parsing is done by `mwparserfromhell`; this module renders its node tree back
to text. Markup characters that the analyzer discards anyway (apostrophes,
heading equals signs, template braces) are kept, so word boundaries survive.
Link targets are appended in parentheses so both the label and the target
page name are searchable.
"""
from __future__ import annotations

import logging
import re
from typing import List

import mwparserfromhell
from mwparserfromhell.nodes import (
    Comment,
    ExternalLink,
    Heading,
    HTMLEntity,
    Node,
    Tag,
    Template,
    Text,
    Wikilink,
)
from mwparserfromhell.parser import ParserError
from mwparserfromhell.wikicode import Wikicode

logger = logging.getLogger(__name__)

_REDIRECT = re.compile(r"\s*#redirect\s*:?\s*\[\[([^\[\]|\n]*)(?:\|[^\[\]\n]*)?\]\]", re.IGNORECASE)
_IMAGE_OPTION = re.compile(
    r"(?:thumb|thumbnail|frame|framed|frameless|border|left|right|center|centre|none"
    r"|baseline|sub|super|top|text-top|middle|bottom|text-bottom|upright"
    r"|\d*x?\d+\s*px|(?:alt|link|page|class|lang|upright)=.*)",
    re.IGNORECASE,
)
_BLANK_LINES = re.compile(r"\n{3,}")

_LIST_TAGS = {"li", "dt", "dd"}
_SILENT_TAGS = {"pre", "hr"}


def textify(markup: str) -> str:
    """Convert raw wikitext into plain text. Total over any string input."""
    m = _REDIRECT.match(markup)
    if m:
        rest = textify(markup[m.end() :])
        redirect = f"REDIRECT: {m.group(1).strip()}"
        return f"{redirect}\n{rest}" if rest.strip() else redirect
    try:
        code = mwparserfromhell.parse(markup)
    except ParserError as exc:
        logger.warning("could not parse wikitext, indexing it verbatim: %s", exc)
        return markup
    return _BLANK_LINES.sub("\n\n", _render_lines(code))


def _render_lines(code: Wikicode) -> str:
    """Render top-level nodes, dropping space-indented (preformatted) lines."""
    parts: List[str] = []
    line_start = True
    in_pre = False
    after_marker = False
    for node in code.nodes:
        if isinstance(node, Text):
            value = node.value
            if after_marker:
                value = value.lstrip(" \t")
                after_marker = False
                line_start = False
            lines = value.split("\n")
            for i, line in enumerate(lines):
                if i:
                    in_pre = False
                starts_line = line_start if i == 0 else True
                if starts_line and line.startswith(" ") and (line.strip() or i == len(lines) - 1):
                    in_pre = True
                if in_pre:
                    lines[i] = ""
            parts.append("\n".join(lines))
            if value:
                line_start = value.endswith("\n")
            continue
        if in_pre:
            continue
        if isinstance(node, Tag) and node.wiki_markup and _tag_name(node) in _LIST_TAGS:
            # List item text follows its marker as sibling nodes up to the line end.
            after_marker = True
            line_start = False
            continue
        after_marker = False
        rendered = _render_node(node)
        parts.append(rendered)
        line_start = rendered.endswith("\n")
    return "".join(parts)


def _render(code: Wikicode) -> str:
    return "".join(_render_node(node) for node in code.nodes)


def _render_node(node: Node) -> str:
    if isinstance(node, Text):
        return node.value
    if isinstance(node, Comment):
        return str(node)
    if isinstance(node, HTMLEntity):
        return node.normalize()
    if isinstance(node, Heading):
        marks = "=" * node.level
        return f"{marks} {_render(node.title).strip()} {marks}"
    if isinstance(node, Template):
        return _render_template(node)
    if isinstance(node, Wikilink):
        return _render_wikilink(node)
    if isinstance(node, ExternalLink):
        url = str(node.url).strip()
        if not node.brackets:
            return url
        label = _render(node.title).strip() if node.title is not None else ""
        return f"{label}({url})"
    if isinstance(node, Tag):
        return _render_tag(node)
    # Argument ({{{1|default}}}) renders nothing.
    return ""


def _render_template(node: Template) -> str:
    parts = [_render(node.name)]
    for param in node.params:
        if param.showkey:
            parts.append(f"{_render(param.name)}={_render(param.value)}")
        else:
            parts.append(_render(param.value))
    return "{{" + "|".join(parts) + "}}"


def _render_wikilink(node: Wikilink) -> str:
    target = str(node.title).strip()
    lowered = target.lower()
    if lowered.startswith("category:"):
        return ""
    if lowered.startswith(("file:", "image:")):
        segments = _pipe_segments(node.text) if node.text is not None else []
        caption = next(
            (s.strip() for s in reversed(segments) if not _IMAGE_OPTION.fullmatch(s.strip())), ""
        )
        return f"IMAGE: {target} {caption}" if caption else f"IMAGE: {target}"
    if target.startswith(":"):
        target = target[1:]
    label = _render(node.text) if node.text is not None else target
    return f"{label}({target})"


def _pipe_segments(code: Wikicode) -> List[str]:
    """Render `code` split on the pipes of its top-level text."""
    segments = [""]
    for node in code.nodes:
        if isinstance(node, Text):
            head, *rest = node.value.split("|")
            segments[-1] += head
            segments.extend(rest)
        else:
            segments[-1] += _render_node(node)
    return segments


def _render_tag(node: Tag) -> str:
    name = _tag_name(node)
    if name in ("b", "i") and node.wiki_markup:
        return f"{node.wiki_markup}{_render(node.contents)}{node.wiki_markup}"
    if name == "table":
        return _render_table(node)
    if name in _SILENT_TAGS or name in _LIST_TAGS or node.contents is None:
        return ""
    return _render(node.contents)


def _render_table(node: Tag) -> str:
    captions: List[str] = []
    rows: List[List[str]] = []
    loose: List[str] = []
    if node.contents is None:
        return ""
    for child in node.contents.nodes:
        if not isinstance(child, Tag):
            continue
        name = _tag_name(child)
        if name == "caption":
            captions.append(_render(child.contents).strip())
        elif name == "tr":
            rows.append(_row_cells(child))
        elif name in ("td", "th"):
            loose.append(_render(child.contents).strip())
    if loose:
        rows.insert(0, loose)
    return "\n".join(captions + [" | ".join(cells) for cells in rows if cells])


def _row_cells(row: Tag) -> List[str]:
    return [
        _render(cell.contents).strip()
        for cell in row.contents.nodes
        if isinstance(cell, Tag) and _tag_name(cell) in ("td", "th")
    ]


def _tag_name(node: Tag) -> str:
    return str(node.tag).strip().lower()
