"""Database utilities for SQLAlchemy 2.x.

Provides engine/session factories and a convenient session scope context manager.
SQLite-only: the wiki database is a MediaWiki SQLite file, opened read-only.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from . import models


def get_engine(sqlite_file: Union[str, Path], *, read_only: bool = True, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for a MediaWiki SQLite database file.

    Parameters
    ----------
    sqlite_file:
        Path to the database file.
    read_only:
        If True (default), the file is opened with `mode=ro` so the wiki is never written.
    echo:
        If True, SQL statements are logged to stdout (useful for debugging).
    """
    path = Path(sqlite_file).resolve()
    if read_only:
        url = f"sqlite:///file:{path}?mode=ro&uri=true"
    else:
        url = f"sqlite:///{path}"
    return create_engine(url, echo=echo)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a sessionmaker bound to the provided engine."""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    Commits on success, rolls back on error, and always closes the session.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create the mapped MediaWiki tables if they do not exist."""
    models.Base.metadata.create_all(bind=engine)
