"""Custom exception hierarchy for wikisearch.

These exceptions allow callers to discriminate error categories
and handle them appropriately while preserving the original context.
"""

from __future__ import annotations


class WikiSearchError(Exception):
    """Base class for all wikisearch exceptions."""


class ConfigError(WikiSearchError):
    """Raised when configuration loading or validation fails."""


class StorageError(WikiSearchError):
    """Raised when the search index cannot be opened, written or committed."""


class InvalidQuery(WikiSearchError):
    """Raised for malformed query syntax or invalid paging options."""


class InvalidDate(WikiSearchError):
    """Raised when a date bound or wiki timestamp cannot be parsed."""


class SourceUnavailable(WikiSearchError):
    """Raised when the wiki database cannot be reached or read."""
