"""Persistent Whoosh index of wiki pages.

A single `WikiIndex` instance is shared by the query path and the reindexer.
Readers hold a point-in-time `Searcher` (`snapshot()`); a reindex builds the
new document set in a fresh segment while readers keep going, and only the
commit, which swaps every segment at once, runs under the exclusive lock.
"""

from __future__ import annotations

import logging
import os
import pickle
import threading
from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from whoosh import scoring
from whoosh.fields import Schema
from whoosh.index import IndexError as WhooshIndexError
from whoosh.index import FileIndex, LockError, create_in, exists_in, open_dir
from whoosh.searching import Searcher
from whoosh.writing import CLEAR

from wikisearch.exceptions import StorageError
from wikisearch.parsers.textify import textify
from wikisearch.search.schema import FIELDS, analyze_keywords, make_schema
from wikisearch.wiki.page import Page

logger = logging.getLogger(__name__)

REVISION_FILE = "revision"


class ReadWriteLock:
    """Any number of readers, or one writer.

    A waiting writer keeps new readers out but lets readers that already
    hold the lock finish.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _naive_utc(value: datetime) -> datetime:
    # Whoosh DATETIME fields only accept naive datetimes.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_datetime(value: date) -> datetime:
    """Midnight of `value`, the form title dates are indexed in."""
    return datetime.combine(value, time.min)


def page_document(page: Page) -> Optional[Dict[str, Any]]:
    """Map a page to index fields, or None when its body textifies to nothing."""
    text = textify(page.text).strip()
    if not text:
        return None
    doc: Dict[str, Any] = {
        FIELDS.id: page.id,
        FIELDS.title: page.title,
        FIELDS.text: text,
        FIELDS.updated: _naive_utc(page.updated),
        FIELDS.namespace: page.namespace.name,
        FIELDS.url: page.url,
    }
    if page.title_date is not None:
        doc[FIELDS.title_date] = to_datetime(page.title_date)
    categories = analyze_keywords(page.categories)
    if categories:
        doc[FIELDS.category] = categories
    return doc


def _schema_compatible(found: Schema, expected: Schema) -> bool:
    if set(found.names()) != set(expected.names()):
        return False
    return all(type(found[name]) is type(expected[name]) for name in expected.names())


class WikiIndex:
    """Index store: bulk rebuild, page count and read snapshots."""

    def __init__(self, index: FileIndex, path: Path) -> None:
        self._index = index
        self._path = path
        self._lock = ReadWriteLock()
        # Serializes reindex passes; the build phase runs outside `_lock`.
        self._write_mutex = threading.Lock()
        self._revision = self._read_revision()

    @classmethod
    def open_or_create(cls, path: Union[str, Path]) -> WikiIndex:
        """Open the index at `path`, creating an empty one if none exists."""
        path = Path(path)
        schema = make_schema()
        try:
            path.mkdir(parents=True, exist_ok=True)
            if exists_in(str(path)):
                index = open_dir(str(path))
            else:
                index = create_in(str(path), schema)
        except (OSError, WhooshIndexError, pickle.UnpicklingError, AttributeError) as exc:
            raise StorageError(f"cannot open index at {path}: {exc}") from exc
        if not _schema_compatible(index.schema, schema):
            raise StorageError(f"index at {path} has an incompatible schema")
        logger.debug("opened index at %s", path)
        return cls(index, path)

    @property
    def schema(self) -> Schema:
        return self._index.schema

    @property
    def revision(self) -> int:
        """Source revision of the last successful reindex; 0 when never indexed."""
        return self._revision

    def requires_reindex(self, latest_revision: int) -> bool:
        return latest_revision > self._revision

    def page_count(self) -> int:
        """Number of committed documents."""
        with self._lock.read():
            try:
                return self._index.doc_count()
            except (OSError, WhooshIndexError) as exc:
                raise StorageError(f"cannot read index: {exc}") from exc

    @contextmanager
    def snapshot(self) -> Iterator[Searcher]:
        """Yield a searcher over the committed state; a reindex waits until it closes."""
        with self._lock.read():
            try:
                searcher = self._index.searcher(weighting=scoring.BM25F())
            except (OSError, WhooshIndexError) as exc:
                raise StorageError(f"cannot read index: {exc}") from exc
            try:
                yield searcher
            finally:
                searcher.close()

    def reindex(self, pages: Iterable[Page], revision: int) -> int:
        """Replace every document with `pages`, then advance the stored revision.

        Returns the number of documents written. Pages whose body textifies
        to nothing are skipped.
        """
        with self._write_mutex:
            try:
                writer = self._index.writer(limitmb=128)
            except (LockError, OSError) as exc:
                raise StorageError(f"cannot open index writer: {exc}") from exc

            written = 0
            try:
                for page in pages:
                    doc = page_document(page)
                    if doc is None:
                        continue
                    writer.add_document(**doc)
                    written += 1
            except (ValueError, TypeError, OSError) as exc:
                writer.cancel()
                raise StorageError(f"cannot write pages: {exc}") from exc
            except BaseException:
                writer.cancel()
                raise

            with self._lock.write():
                try:
                    writer.commit(mergetype=CLEAR)
                except (OSError, WhooshIndexError) as exc:
                    raise StorageError(f"cannot commit index: {exc}") from exc
                self._write_revision(max(revision, self._revision))

        logger.debug("committed %d documents at revision %d", written, self._revision)
        return written

    # ----- revision bookkeeping -----

    def _read_revision(self) -> int:
        revision_path = self._path / REVISION_FILE
        try:
            raw = revision_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return 0
        except OSError as exc:
            raise StorageError(f"cannot read {revision_path}: {exc}") from exc
        try:
            return int(raw or 0)
        except ValueError as exc:
            raise StorageError(f"corrupt revision file {revision_path}") from exc

    def _write_revision(self, revision: int) -> None:
        revision_path = self._path / REVISION_FILE
        tmp_path = revision_path.with_suffix(".tmp")
        try:
            tmp_path.write_text(str(revision), encoding="utf-8")
            os.replace(tmp_path, revision_path)
        except OSError as exc:
            raise StorageError(f"cannot write {revision_path}: {exc}") from exc
        self._revision = revision

