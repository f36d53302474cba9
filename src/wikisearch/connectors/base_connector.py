"""Base interface for the wiki the index is built from.

Sources expose asynchronous methods so blocking database access can be
moved off the event loop by the implementation.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from wikisearch.wiki.page import Page


class WikiSource(ABC):
    """Abstract wiki source.

    Implementations should be safe to construct without side effects and should
    not touch the database until methods are invoked.
    """

    @abstractmethod
    async def latest_revision(self) -> int:
        """Return the newest revision id; grows whenever any page changes."""
        raise NotImplementedError

    @abstractmethod
    async def list_pages(self) -> List[Page]:
        """Fetch every page with its current text."""
        raise NotImplementedError
