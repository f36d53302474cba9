"""Read-only SQLAlchemy models for the MediaWiki tables wikisearch reads.

Only the columns needed to produce page records are mapped. MediaWiki keeps
titles, timestamps and revision text in binary columns; `WikiString` decodes
them to `str` on load.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class WikiString(TypeDecorator):
    """Binary column holding UTF-8 text."""

    impl = LargeBinary
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    def process_result_value(self, value, dialect):
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8", errors="replace")
        return value


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


class Page(Base):
    """A wiki page; `page_latest` points at its current revision."""

    __tablename__ = "page"

    page_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    page_namespace: Mapped[int] = mapped_column(Integer, default=0)
    page_title: Mapped[str] = mapped_column(WikiString)
    page_is_redirect: Mapped[int] = mapped_column(Integer, default=0)
    page_touched: Mapped[str] = mapped_column(WikiString)
    page_latest: Mapped[int] = mapped_column(Integer)


class Revision(Base):
    __tablename__ = "revision"

    rev_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rev_page: Mapped[int] = mapped_column(ForeignKey("page.page_id"))
    rev_timestamp: Mapped[str] = mapped_column(WikiString)


class Slot(Base):
    """Revision slot; the main slot carries the page's wikitext."""

    __tablename__ = "slots"

    slot_revision_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slot_role_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slot_content_id: Mapped[int] = mapped_column(ForeignKey("content.content_id"))


class Content(Base):
    """Content row; `content_address` is `tt:<old_id>` for text-table storage."""

    __tablename__ = "content"

    content_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content_address: Mapped[str] = mapped_column(WikiString)


class Text(Base):
    __tablename__ = "text"

    old_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    old_text: Mapped[Optional[bytes]] = mapped_column(LargeBinary, default=None)
    old_flags: Mapped[Optional[str]] = mapped_column(WikiString, default=None)


class CategoryLink(Base):
    __tablename__ = "categorylinks"

    cl_from: Mapped[int] = mapped_column(Integer, primary_key=True)
    cl_to: Mapped[str] = mapped_column(WikiString, primary_key=True)
    cl_sortkey: Mapped[Optional[str]] = mapped_column(String(230), default=None)
