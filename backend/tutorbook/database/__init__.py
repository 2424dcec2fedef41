"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from .engines import build_engine

logger = logging.getLogger(__name__)

Base: DeclarativeMeta = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)

_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Return the process engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        configure_engine(build_engine())
    assert _engine is not None
    return _engine


def configure_engine(engine: Engine) -> Engine:
    """Bind the session factory to ``engine`` (used by the app factory and tests)."""
    global _engine
    _engine = engine
    SessionLocal.configure(bind=engine)
    return engine


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables plus the dialect-specific overlap guards."""
    # Import models so Base.metadata is populated before create_all.
    from .. import models  # noqa: F401

    target = engine or get_engine()
    Base.metadata.create_all(bind=target)
    logger.info("Database schema ensured on %s", target.dialect.name)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = [
    "Base",
    "SessionLocal",
    "configure_engine",
    "get_db",
    "get_engine",
    "init_db",
]
