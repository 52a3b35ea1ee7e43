"""Database Utilities Module

SQLAlchemy engine and session helpers for the vector store. PostgreSQL with
the pgvector extension is the production target; SQLite URLs are accepted
for local runs and tests.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DEFAULT_DATABASE_URL

logger = logging.getLogger(__name__)


def get_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """Create an engine for ``url``; falls back to an in-memory SQLite database."""
    db_url = url or DEFAULT_DATABASE_URL
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url or db_url.rstrip("/").endswith("sqlite:"):
            # every session must see the same in-memory database
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, echo=echo, **kwargs)
    return create_engine(db_url, echo=echo, pool_pre_ping=True)


def supports_concurrent_sessions(engine: Engine) -> bool:
    """False when every session shares one connection (in-memory SQLite)."""
    return not isinstance(engine.pool, StaticPool)


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Session context: commit on success, roll back on error, always close."""
    session = get_session_factory(engine)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_schema(engine: Engine) -> None:
    """Create the embeddings table and its indexes.

    On PostgreSQL the ``vector`` extension is enabled first; the table is
    created with its HNSW index in the same pass.
    """
    from .store import Base

    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    Base.metadata.create_all(engine)
    logger.info("✓ Vector store schema ready (%s)", engine.dialect.name)


def drop_schema(engine: Engine) -> None:
    """Drop the embeddings table. The ``vector`` extension is left in place."""
    from .store import Base

    Base.metadata.drop_all(engine)
    logger.info("Dropped vector store schema (%s)", engine.dialect.name)
