"""MediaWiki source reading pages straight from the wiki's SQLite database.

Text is resolved the way MediaWiki stores it since 1.32:
page.page_latest -> slots (main role) -> content ("tt:<id>") -> text.
The database is opened read-only; blocking queries run in a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
import zlib
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from wikisearch.connectors.base_connector import WikiSource
from wikisearch.exceptions import InvalidDate, SourceUnavailable
from wikisearch.storage import models
from wikisearch.storage.database import get_engine, make_session_factory, session_scope
from wikisearch.wiki.page import (
    Namespace,
    Page,
    page_url,
    parse_title_date,
    parse_wiki_timestamp,
)

logger = logging.getLogger(__name__)

MAIN_SLOT_ROLE = 1
_TEXT_ADDRESS_PREFIX = "tt:"
_IN_CHUNK = 500


def decode_revision_text(data: Optional[bytes], flags: Optional[str]) -> str:
    """Decode a `text.old_text` blob according to its `old_flags`."""
    if data is None:
        return ""
    flag_set = {f.strip() for f in (flags or "").split(",") if f.strip()}
    if "external" in flag_set:
        # External storage clusters are not reachable from the SQLite file.
        return ""
    if "gzip" in flag_set:
        data = zlib.decompress(data, -zlib.MAX_WBITS)
    if isinstance(data, str):
        return data
    return bytes(data).decode("utf-8", errors="replace")


def _chunks(values: List[int], size: int) -> Iterable[List[int]]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


class MediaWikiSource(WikiSource):
    """Wiki source backed by a MediaWiki SQLite database.

    Parameters
    ----------
    sqlite_file:
        Path of the wiki database. Ignored when `engine` is given.
    base_url:
        Prefix used to build page URLs, e.g. "https://wiki.example.org/index.php/".
    engine:
        Optional pre-built SQLAlchemy engine (tests).
    """

    def __init__(
        self,
        *,
        sqlite_file: Optional[Union[str, Path]] = None,
        base_url: str = "",
        engine: Optional[Engine] = None,
    ) -> None:
        if engine is None:
            if sqlite_file is None:
                raise ValueError("either sqlite_file or engine is required")
            engine = get_engine(sqlite_file)
        self._engine = engine
        self._sessions = make_session_factory(engine)
        self._base_url = base_url

    async def latest_revision(self) -> int:
        return await asyncio.to_thread(self._latest_revision)

    async def list_pages(self) -> List[Page]:
        return await asyncio.to_thread(self._list_pages)

    def _latest_revision(self) -> int:
        try:
            with session_scope(self._sessions) as session:
                value = session.scalar(select(func.max(models.Revision.rev_id)))
        except (SQLAlchemyError, OSError) as exc:
            raise SourceUnavailable(f"cannot read latest revision: {exc}") from exc
        return int(value or 0)

    def _list_pages(self) -> List[Page]:
        try:
            with session_scope(self._sessions) as session:
                rows = session.execute(
                    select(
                        models.Page.page_id,
                        models.Page.page_namespace,
                        models.Page.page_title,
                        models.Page.page_touched,
                        models.Content.content_address,
                    )
                    .join(models.Slot, models.Slot.slot_revision_id == models.Page.page_latest)
                    .join(models.Content, models.Content.content_id == models.Slot.slot_content_id)
                    .where(models.Slot.slot_role_id == MAIN_SLOT_ROLE)
                    .order_by(models.Page.page_id)
                ).all()

                text_ids: Dict[int, int] = {}
                for page_id, _ns, _title, _touched, address in rows:
                    if address and address.startswith(_TEXT_ADDRESS_PREFIX):
                        try:
                            text_ids[page_id] = int(address[len(_TEXT_ADDRESS_PREFIX) :])
                        except ValueError:
                            logger.debug("unsupported content address %r", address)

                texts = self._load_texts(session, sorted(set(text_ids.values())))
                categories = self._load_categories(session)
        except (SQLAlchemyError, OSError, zlib.error) as exc:
            raise SourceUnavailable(f"cannot read pages: {exc}") from exc

        pages: List[Page] = []
        for page_id, ns, title, touched, _address in rows:
            namespace = Namespace(ns)
            pages.append(
                Page(
                    id=page_id,
                    title=title.replace("_", " "),
                    text=texts.get(text_ids.get(page_id, -1), ""),
                    updated=self._touched(page_id, touched),
                    namespace=namespace,
                    url=page_url(self._base_url, namespace, title),
                    title_date=parse_title_date(title),
                    categories=categories.get(page_id, []),
                )
            )
        logger.debug("loaded %d pages", len(pages))
        return pages

    @staticmethod
    def _load_texts(session, ids: List[int]) -> Dict[int, str]:
        texts: Dict[int, str] = {}
        for chunk in _chunks(ids, _IN_CHUNK):
            stmt = select(models.Text.old_id, models.Text.old_text, models.Text.old_flags).where(
                models.Text.old_id.in_(chunk)
            )
            for old_id, data, flags in session.execute(stmt):
                texts[old_id] = decode_revision_text(data, flags)
        return texts

    @staticmethod
    def _load_categories(session) -> Dict[int, List[str]]:
        grouped: Dict[int, List[str]] = defaultdict(list)
        stmt = select(models.CategoryLink.cl_from, models.CategoryLink.cl_to).order_by(
            models.CategoryLink.cl_from, models.CategoryLink.cl_sortkey, models.CategoryLink.cl_to
        )
        for page_id, category in session.execute(stmt):
            grouped[page_id].append(category.replace("_", " "))
        return dict(grouped)

    @staticmethod
    def _touched(page_id: int, value: Optional[str]) -> datetime:
        try:
            return parse_wiki_timestamp(value or "")
        except InvalidDate:
            logger.warning("page %d has an invalid page_touched %r", page_id, value)
            return datetime.fromtimestamp(0, tz=timezone.utc)
