"""Database configuration — connection URL and pool sizing from the environment.

The URL comes from ``DATABASE_URL`` when set, otherwise it is assembled
from ``PG_HOST`` / ``PG_PORT`` / ``PG_USER`` / ``PG_PASSWORD`` /
``PG_DATABASE`` (handy under docker-compose).

Alembic runs synchronously and needs a plain ``postgresql://`` URL; the
application needs the ``postgresql+asyncpg://`` form.  ``DatabaseConfig``
exposes both.
"""

import os
from dataclasses import dataclass

_ASYNC_PREFIX = "postgresql+asyncpg://"
_SYNC_PREFIX = "postgresql://"


@dataclass(frozen=True)
class DatabaseConfig:
    """Immutable database settings read once per process."""

    url: str
    pool_size: int = 5
    max_overflow: int = 10
    echo: bool = False

    @property
    def sync_url(self) -> str:
        """URL for Alembic (synchronous driver)."""
        return self.url.replace(_ASYNC_PREFIX, _SYNC_PREFIX, 1)

    @property
    def async_url(self) -> str:
        """URL for the async SQLAlchemy engine (asyncpg driver)."""
        if self.url.startswith(_SYNC_PREFIX):
            return self.url.replace(_SYNC_PREFIX, _ASYNC_PREFIX, 1)
        return self.url


def _url_from_parts() -> str:
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "relocation")
    password = os.getenv("PG_PASSWORD", "relocation")
    database = os.getenv("PG_DATABASE", "relocation")
    return f"{_SYNC_PREFIX}{user}:{password}@{host}:{port}/{database}"


def load_database_config() -> DatabaseConfig:
    """Build a ``DatabaseConfig`` from ``DATABASE_URL`` / ``PG_*`` env vars."""
    return DatabaseConfig(
        url=os.getenv("DATABASE_URL") or _url_from_parts(),
        pool_size=int(os.getenv("PG_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("PG_MAX_OVERFLOW", "10")),
        echo=os.getenv("PG_ECHO", "").lower() in ("1", "true", "yes"),
    )


def get_sync_url() -> str:
    """Synchronous connection URL (used by Alembic migrations)."""
    return load_database_config().sync_url


def get_async_url() -> str:
    """asyncpg connection URL for the runtime engine."""
    return load_database_config().async_url
