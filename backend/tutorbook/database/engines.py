"""Engine construction with dialect-specific tuning."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from ..core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 5,
    # Fail fast when the pool is exhausted instead of queueing requests
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return _is_sqlite(url) and (":memory:" in url or url.rstrip("/").endswith("sqlite:"))


def _install_sqlite_immediate_transactions(engine: Engine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite's deferred BEGIN lets two writers read concurrently and then
    deadlock on upgrade; BEGIN IMMEDIATE serialises them behind the busy timeout.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: Optional[str] = None, **overrides: Any) -> Engine:
    """Create an engine for ``database_url`` (defaults to settings)."""
    url = database_url or settings.database_url
    if _is_sqlite(url):
        kwargs: dict[str, Any] = {
            "future": True,
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_s,
            },
        }
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
        kwargs.update(overrides)
        engine = create_engine(url, **kwargs)
        _install_sqlite_immediate_transactions(engine)
    else:
        kwargs = {**_DEFAULT_POOL_KWARGS, "future": True}
        kwargs.update(overrides)
        engine = create_engine(url, **kwargs)

    logger.info("Database engine created for dialect %s", engine.dialect.name)
    return engine
