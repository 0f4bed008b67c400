"""Database engine factories."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from payequity.core.config import DatabaseSettings
from payequity.core.log import get_logger

LOGGER = get_logger(__name__)


def create_sync_engine(
    database: DatabaseSettings,
    *,
    echo: bool = False,
    **kwargs,
) -> Engine:
    """Create a synchronous SQLAlchemy engine for ``database``."""

    url = database.sqlalchemy_url
    options = dict(kwargs)
    options.setdefault("echo", echo)
    if url.startswith("sqlite"):
        # Background workers share the engine across threads.
        options.setdefault("connect_args", {"check_same_thread": False})
    else:
        options.setdefault("pool_pre_ping", True)

    LOGGER.debug("Creating SQLAlchemy engine for %s", database.masked_url)
    return create_engine(url, future=True, **options)
