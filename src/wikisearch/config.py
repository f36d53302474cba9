from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseModel):
    """Application-specific configuration values."""

    port: int = 8000
    log_level: str = "INFO"
    # Transport settings for FastMCP: "stdio" (default), "http", or "sse"
    transport: Literal["stdio", "http", "sse"] = "stdio"
    host: str = "127.0.0.1"


class WikiConfig(BaseModel):
    """Source wiki configuration values."""

    sqlite_file: Optional[str] = None  # MediaWiki SQLite database, opened read-only
    base_url: str = "http://localhost/index.php/"


class IndexConfig(BaseModel):
    """Search index configuration values."""

    path: str = "index"
    reindex_interval_seconds: int = 60 * 60
    reindex_on_start: bool = True
    snippet_length: int = 400


class Settings(BaseSettings):
    """Top-level settings loaded from environment variables and .env only."""

    model_config = SettingsConfigDict(
        env_prefix="WIKISEARCH_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app: AppConfig = AppConfig()
    wiki: WikiConfig = WikiConfig()
    index: IndexConfig = IndexConfig()


def load_settings() -> Settings:
    """Load settings from environment variables and .env only."""
    return Settings()  # type: ignore[call-arg]
