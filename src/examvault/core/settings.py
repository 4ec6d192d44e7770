"""Deployment settings for examvault.

The SQL dialect, database location and paging convention are chosen once
per deployment, never per call. ``VaultSettings`` reads them from
``EXAMVAULT_*`` environment variables or a ``.env`` file.

Usage::

    $ export EXAMVAULT_DIALECT=sqlserver
    $ export EXAMVAULT_SQLSERVER_DSN="Driver={ODBC Driver 18 for SQL Server};..."

    settings = get_settings()
    provider = build_provider(settings)   # examvault.core.connection

Tags:
    settings, configuration, pydantic, environment

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VaultSettings(BaseSettings):
    """examvault configuration.

    Fields
    ──────
    dialect          : ``sqlite`` (dialect B) or ``sqlserver`` (dialect A)
    database_path    : SQLite database file
    sqlserver_dsn    : ODBC connection string for SQL Server
    page_base        : Default page numbering (0 or 1) for repositories
                       that do not declare their own
    archive_suffix   : Suffix appended to a table name for its archive store
    connect_timeout  : Seconds to wait when opening a connection
    log_level        : Structlog log level
    json_logs        : JSON output (True) or console output (False)
    """

    model_config = SettingsConfigDict(
        env_prefix="EXAMVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    dialect: Literal["sqlite", "sqlserver"] = "sqlite"
    database_path: Path = Field(
        default_factory=lambda: Path("data") / "examvault.db",
        description="SQLite database file",
    )
    sqlserver_dsn: str = ""
    connect_timeout: float = 5.0

    # ── Engine ───────────────────────────────────────────────────
    page_base: int = 1
    archive_suffix: str = "Archive"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("page_base")
    @classmethod
    def _page_base_is_zero_or_one(cls, value: int) -> int:
        if value not in (0, 1):
            raise ValueError("page_base must be 0 or 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> VaultSettings:
    """Cached settings instance (call ``get_settings.cache_clear()`` in tests)."""
    return VaultSettings()


__all__ = ["VaultSettings", "get_settings"]
